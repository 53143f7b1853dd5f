"""Typed failures raised to callers of engine operations.

Every write that the store rejects surfaces as one of the ``DuetError``
subclasses below; the original store exception is chained as ``__cause__``.
Validation problems (blank text, blank list name) are not errors: those
operations are silent no-ops.
"""


class DuetError(Exception):
    """Base class for Duet failures.

    Attributes:
        code: Machine-readable error code (e.g. "SEND_FAILED").
        message: Human-readable message.
        http_status: Status code used when mapped to HTTP, 500 by default.
    """

    code = "DUET_ERROR"
    http_status = 500

    def __init__(self, message: str, **extra):
        self.message = message
        self.extra = extra
        super().__init__(message)


class StoreError(DuetError):
    """The document store could not serve a request."""

    code = "STORE_ERROR"


class DocumentNotFoundError(StoreError):
    """A field-level update or array operation targeted a missing document."""

    code = "DOCUMENT_NOT_FOUND"
    http_status = 404


class NotPermittedError(DuetError):
    """Identity is not on the allow-list."""

    code = "NOT_PERMITTED"
    http_status = 403


class SendFailedError(DuetError):
    code = "SEND_FAILED"


class LikeFailedError(DuetError):
    code = "LIKE_FAILED"


class CreateListFailedError(DuetError):
    code = "CREATE_LIST_FAILED"


class UpdateListFailedError(DuetError):
    code = "UPDATE_LIST_FAILED"


class ListNotFoundError(UpdateListFailedError):
    """The list being updated does not exist."""

    code = "LIST_NOT_FOUND"
    http_status = 404


class DeleteListFailedError(DuetError):
    code = "DELETE_LIST_FAILED"


class AddToListFailedError(DuetError):
    code = "ADD_TO_LIST_FAILED"


class RemoveFromListFailedError(DuetError):
    code = "REMOVE_FROM_LIST_FAILED"


class ToggleItemFailedError(DuetError):
    code = "TOGGLE_ITEM_FAILED"


class ListItemsFailedError(DuetError):
    code = "LIST_ITEMS_FAILED"


class AvatarUploadFailedError(DuetError):
    code = "AVATAR_UPLOAD_FAILED"
