"""Server-sent events encoding of ``StreamEvent``s."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, AsyncIterator, Callable

from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from dadafarin.domain.models import StreamEvent, StreamEventType

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_event(event: StreamEvent) -> str:
    """Encode one event.

    Fragments go out as unnamed ``data:`` events; ``end`` and ``error`` are
    named events. Payloads are compact JSON with non-ASCII text kept as is.
    """
    data = json.dumps(event.payload, ensure_ascii=False, separators=(",", ":"))
    if event.type == StreamEventType.DATA:
        return f"data: {data}\n\n"
    return f"event: {event.type}\ndata: {data}\n\n"


async def encode_events(events: AsyncGenerator[StreamEvent, None]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield format_event(event)
    finally:
        # Propagate an early close (client disconnect) to the event source.
        await events.aclose()


class EventStreamResponse(StreamingResponse):
    """``text/event-stream`` response that calls *on_close* however the response ends.

    The body generator's own cleanup only runs once iteration has started. A
    client that disconnects before the response starts, or an ASGI 2.4 server
    raising ``ClientDisconnect``, skips both that cleanup and any background
    task, so *on_close* is called from ``__call__`` itself.
    """

    media_type = "text/event-stream"

    def __init__(self, content: AsyncIterator[str], on_close: Callable[[], None]) -> None:
        super().__init__(content, headers=SSE_HEADERS)
        self.on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.on_close()
