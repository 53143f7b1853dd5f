"""Identity allow-list and per-session context."""

from datetime import datetime, timezone
from typing import Iterable, Protocol

from ..config import allowed_identities
from ..logging_config import get_logger
from ..store import ISubscription

logger = get_logger(__name__)


class IAuthorizer(Protocol):
    """Decides whether an authenticated identity may use the app."""

    def is_permitted(self, identity: str) -> bool:
        ...


class AllowListAuthorizer:
    """Permits only identities on a fixed allow-list.

    An empty allow-list permits everyone, which is what local development and
    the simulator rely on.
    """

    def __init__(self, identities: Iterable[str] | None = None):
        self._identities = (
            frozenset(identities) if identities is not None else allowed_identities()
        )

    def is_permitted(self, identity: str) -> bool:
        if not identity:
            return False
        return not self._identities or identity in self._identities


class SessionContext:
    """Who is signed in, plus every live subscription opened on their behalf.

    Created on sign-in and closed on sign-out; closing it closes all
    subscriptions registered with ``track``.
    """

    def __init__(self, identity: str):
        self.identity = identity
        self.started_at = datetime.now(timezone.utc)
        self._subscriptions: list[ISubscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def track(self, subscription: ISubscription) -> ISubscription:
        """Tie a subscription's lifetime to this session."""
        if self._closed:
            subscription.close()
        else:
            self._subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription.close()
        logger.info(
            "Session closed for %s (%d subscriptions)",
            self.identity,
            len(self._subscriptions),
        )
        self._subscriptions.clear()
