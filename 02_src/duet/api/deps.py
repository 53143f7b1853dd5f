"""Shared route dependencies."""

from fastapi import Header, HTTPException

from ..app import IApplication
from ..errors import DuetError
from ..session import ChatSession


def session_dependency(app: IApplication):
    """Resolve the caller's ChatSession from the X-Identity header."""

    async def current_session(x_identity: str = Header(...)) -> ChatSession:
        session = app.get_session(x_identity)
        if session is None:
            raise HTTPException(status_code=401, detail="Not signed in")
        return session

    return current_session


def http_error(error: DuetError) -> HTTPException:
    """Map a DuetError to an HTTPException."""
    return HTTPException(
        status_code=error.http_status,
        detail={"code": error.code, "message": error.message},
    )
