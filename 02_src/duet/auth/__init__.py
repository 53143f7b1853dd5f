"""Identity and session module."""

from .auth import AllowListAuthorizer, IAuthorizer, SessionContext

__all__ = ["AllowListAuthorizer", "IAuthorizer", "SessionContext"]
