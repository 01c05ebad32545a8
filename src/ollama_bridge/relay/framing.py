"""Server-sent event framing for the unified streaming protocol."""

from aiohttp import web

DONE_SENTINEL = "[DONE]"

EVENT_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_event(data: str) -> bytes:
    """Frame one payload as a ``data:`` event."""
    return f"data: {data}\n\n".encode("utf-8")


DONE_EVENT = format_event(DONE_SENTINEL)


async def prepare_event_stream(request: web.Request) -> web.StreamResponse:
    """Send event-stream headers and return the response to write events to."""
    response = web.StreamResponse(status=200, headers=EVENT_STREAM_HEADERS)
    await response.prepare(request)
    return response
