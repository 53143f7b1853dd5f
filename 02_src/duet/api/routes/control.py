"""Control API routes: data reset and the two-party simulator."""

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ...app import IApplication
from ...logging_config import get_logger

logger = get_logger(__name__)

# Simulator registered by main(); None under tests
_sim_instance: Any = None


class ControlResponse(BaseModel):
    """Outcome of a control action."""

    status: str
    sim_running: bool | None = None


def set_sim_instance(sim: Any) -> None:
    global _sim_instance
    _sim_instance = sim


def get_sim_instance() -> Any:
    return _sim_instance


def _require_sim() -> Any:
    if _sim_instance is None:
        raise HTTPException(status_code=404, detail="SIM not configured")
    return _sim_instance


def create_control_router(app: IApplication) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/reset", response_model=ControlResponse, response_model_exclude_none=True)
    async def reset_system() -> dict:
        """Sign everyone out and drop every document."""
        await app.reset()
        logger.info("System reset via control API")
        return {"status": "ok"}

    @router.get("/sim", response_model=ControlResponse)
    async def sim_status() -> dict:
        """Whether the simulated conversation is running."""
        return {"status": "ok", "sim_running": _require_sim().running}

    @router.post("/sim/start", response_model=ControlResponse)
    async def start_sim() -> dict:
        """Run the scripted conversation between the two simulated users."""
        sim = _require_sim()
        await sim.start()
        return {"status": "ok", "sim_running": sim.running}

    @router.post("/sim/stop", response_model=ControlResponse)
    async def stop_sim() -> dict:
        """Interrupt the simulated conversation."""
        sim = _require_sim()
        await sim.stop()
        return {"status": "ok", "sim_running": sim.running}

    return router
