"""Read-only REST API exposing the launcher's session state."""

import logging

from fastapi import APIRouter, HTTPException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Injected by main.py at startup
_controller = None


def init_routes(controller) -> None:
    """Inject the session controller into the routes module."""
    global _controller
    _controller = controller


def _require_controller():
    if _controller is None:
        raise HTTPException(status_code=503, detail="Launcher not started")
    return _controller


@router.get("/session")
async def get_session():
    """Return the current role, game pid and host."""
    return _require_controller().snapshot().model_dump(mode="json")


@router.get("/peers")
async def list_peers():
    """Return known candidates, best host first."""
    controller = _require_controller()
    best = controller.registry.best()
    return {
        "peers": [p.model_dump(mode="json") for p in controller.registry.peers()],
        "best": best.name if best else None,
        "others": controller.registry.count_others(),
    }


@router.get("/config")
async def get_config():
    return _require_controller().config.model_dump(mode="json")
