"""Health check endpoint reporting the configured model."""

from fastapi import APIRouter

from app.config import settings
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    """Report liveness and the model answers are generated with.

    Makes no provider call: the model is reachable only when a request needs it.
    """
    return HealthResponse(status="ok", model=settings.gemini_model)
