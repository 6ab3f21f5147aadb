"""Configuration endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["config"])


@router.get("/config")
async def get_config(request: Request):
    """Get current configuration (safe fields only, never secrets).

    Changes to the configuration only affect runs started afterwards.
    """
    config = request.app.state.config
    return {
        "credentials_id": config.credentials_id,
        "source_location": config.source_location,
        "poll": {
            "period_ms": config.poll.period_ms,
            "max_attempts": config.poll.max_attempts,
            "max_duration_ms": config.poll.max_duration_ms,
        },
        "scheduler": {
            "max_workers": config.scheduler.max_workers,
        },
        "operation": {
            "type": config.operation.type.value,
            "executable": config.operation.executable,
            "timeout": config.operation.timeout,
        },
        "tools": sorted(config.tools),
    }
