"""Worker routes (APP_ROLE=worker): triggers and notification admin."""

from fastapi import APIRouter

from petly.api.routes import notifications, triggers

router = APIRouter()


@router.get("/triggers/health")
def triggers_health() -> dict:
    """Trigger subsystem health check."""
    return {"status": "ok", "subsystem": "triggers"}


router.include_router(triggers.router)
router.include_router(notifications.router)
