"""
Health check routers.

Liveness probes at the root and a readiness report under the API
prefix. No business logic. Returns application and connection status.
"""

from fastapi import APIRouter, Request

from app.interfaces.schemas import HealthResponse

router = APIRouter(tags=["health"])
api_router = APIRouter(tags=["health"])


@router.get("/", summary="Root liveness probe")
def root() -> str:
    return "OK"


@router.get("/healthz", summary="Liveness probe")
async def healthz() -> str:
    return "ok"


@api_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns application status, version and connection status.",
)
def health_check(request: Request) -> HealthResponse:
    """Return current application health status."""
    state = request.app.state
    return HealthResponse(
        status="ok",
        version=state.settings.version,
        environment=state.settings.environment,
        database=state.database.status,
        cache=state.cache.status,
    )
