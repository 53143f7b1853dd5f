"""Session API routes."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...app import IApplication
from ...errors import DuetError
from ...models import Drawing
from ...session import ChatSession
from ..deps import http_error, session_dependency


class SignInRequest(BaseModel):
    """Request model for signing in."""

    identity: str
    email: str
    display_name: str | None = None
    photo_url: str | None = None


class AvatarRequest(BaseModel):
    """Request model for uploading an avatar as a data URL."""

    data_url: str


def _session_view(session: ChatSession) -> dict:
    return {
        "identity": session.identity,
        "profile": session.profile.to_dict(),
        "counterpart": session.counterpart.to_dict() if session.counterpart else None,
    }


def create_sessions_router(app: IApplication) -> APIRouter:
    """Create sessions router."""
    router = APIRouter(prefix="/api/sessions", tags=["sessions"])
    current_session = session_dependency(app)

    @router.post("")
    async def sign_in(request: SignInRequest) -> dict:
        """Sign in (or re-sign in) an identity and open its live session."""
        try:
            session = await app.sign_in(
                identity=request.identity,
                email=request.email,
                display_name=request.display_name,
                photo_url=request.photo_url,
            )
        except DuetError as e:
            raise http_error(e)
        return _session_view(session)

    @router.get("/me")
    async def who_am_i(session: ChatSession = Depends(current_session)) -> dict:
        """Current profile and the counterpart's live profile."""
        return _session_view(session)

    @router.delete("")
    async def sign_out(session: ChatSession = Depends(current_session)) -> dict:
        """Close the caller's session and its subscriptions."""
        await app.sign_out(session.identity)
        return {"status": "ok"}

    @router.post("/avatar")
    async def upload_avatar(
        request: AvatarRequest, session: ChatSession = Depends(current_session)
    ) -> dict:
        """Upload a custom avatar."""
        try:
            image = Drawing.from_data_url(request.data_url)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            profile = await app.profiles.upload_avatar(
                session.identity, image.data, image.content_type
            )
        except DuetError as e:
            raise http_error(e)
        session.profile = profile
        return profile.to_dict()

    return router
