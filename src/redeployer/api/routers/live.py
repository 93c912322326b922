"""Live status stream (server-sent events)."""

from collections.abc import AsyncIterator
import json
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
import structlog

from redeployer.context import AppContext
from redeployer.event_bus import EventBus
from redeployer.views import StatusView

from ..dependencies import get_context

logger = structlog.get_logger()

router = APIRouter(tags=["live"])

SSE_EVENT_NAME = "service_event"


def _sse_event(event_type: str, data: dict[str, Any]) -> str:
    """Format a server-sent event."""
    return f"event: {event_type}\ndata: {json.dumps(data)}\n\n"


async def event_stream(bus: EventBus, view: StatusView) -> AsyncIterator[str]:
    """Render each bus event for one viewer until it disconnects.

    The subscription only exists while the body is being streamed, so a client
    that leaves before the first chunk never registers on the bus.
    """
    async with bus.subscribe() as subscription:
        try:
            async for event in subscription:
                payload = await view.render(event)
                yield _sse_event(SSE_EVENT_NAME, payload)
        finally:
            logger.info("live_stream_closed", dropped=subscription.dropped)


@router.get("/live")
async def live_services(ctx: AppContext = Depends(get_context)) -> StreamingResponse:
    """Stream service status to a viewer, starting with a connect snapshot."""
    return StreamingResponse(
        event_stream(ctx.bus, ctx.view),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
