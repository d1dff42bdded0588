"""Public-facing routes (APP_ROLE=public).

The public role serves no adoption data; it only answers the platform's
liveness probe so the same image can be deployed with either role.
"""

from fastapi import APIRouter, Request

from petly.observability.logging import SERVICE_NAME

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    """Liveness check; reports which role this instance was started with."""
    return {"status": "ok", "service": SERVICE_NAME, "role": request.app.state.role}
