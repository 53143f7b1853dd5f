"""API routers."""

from . import control
from .control import create_control_router
from .lists import create_lists_router
from .messaging import create_messaging_router
from .observability import create_observability_router
from .sessions import create_sessions_router

__all__ = [
    "control",
    "create_control_router",
    "create_lists_router",
    "create_messaging_router",
    "create_observability_router",
    "create_sessions_router",
]
