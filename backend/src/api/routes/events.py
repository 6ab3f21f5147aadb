"""SSE events endpoint for real-time run progress."""

import asyncio
import json

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

router = APIRouter(tags=["events"])


@router.get("/events")
async def event_stream(request: Request, run_id: str = None):
    """Stream run events, optionally only those of one run."""
    event_bus = request.app.state.event_bus
    queue = event_bus.subscribe()

    async def generate():
        try:
            yield {
                "event": "connected",
                "data": json.dumps({"type": "connected", "status": "ok"}),
            }
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield {"comment": "keepalive"}
                    continue
                if run_id and event["data"].get("run_id") != run_id:
                    continue
                yield {
                    "event": event["type"],
                    "data": json.dumps(event),
                }
        finally:
            event_bus.unsubscribe(queue)

    return EventSourceResponse(generate(), ping=20)
