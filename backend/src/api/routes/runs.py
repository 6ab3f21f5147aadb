"""Run endpoints - start a push, inspect progress, cancel."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from orchestrator.errors import ConfigurationError

router = APIRouter(tags=["runs"])


class RunCreate(BaseModel):
    source_location: Optional[str] = None
    poll_period_ms: Optional[int] = Field(default=None, ge=0)


class RunCancel(BaseModel):
    reason: Optional[str] = None


def _service(request: Request):
    return request.app.state.run_service


@router.post("/runs")
async def start_run(body: RunCreate, request: Request):
    """Push source changes and start polling their status."""
    try:
        run = _service(request).start_run(
            source_location=body.source_location,
            poll_period_ms=body.poll_period_ms,
        )
    except ConfigurationError as e:
        raise HTTPException(400, str(e))
    return run.to_dict()


@router.get("/runs")
async def list_runs(request: Request):
    """List recent runs, oldest first."""
    return [run.to_dict() for run in _service(request).list_runs()]


@router.get("/runs/{run_id}")
async def get_run(run_id: str, request: Request):
    run = _service(request).get_run(run_id)
    if run is None:
        raise HTTPException(404, f"Run '{run_id}' not found")
    return run.to_dict()


@router.post("/runs/{run_id}/cancel")
async def cancel_run(run_id: str, request: Request, body: Optional[RunCancel] = None):
    """Cancel a run. Cancelling a finished run is a no-op."""
    reason = body.reason if body is not None else None
    cause = RuntimeError(reason) if reason else None
    service = _service(request)
    if not service.cancel_run(run_id, cause):
        raise HTTPException(404, f"Run '{run_id}' not found")
    return service.get_run(run_id).to_dict()
