"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    service = request.app.state.run_service
    return {
        "status": "ok",
        "version": "0.1.0",
        "active_runs": service.active_count(),
        "operation": service.config.operation.type.value,
    }
