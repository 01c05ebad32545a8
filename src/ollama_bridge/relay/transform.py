"""Pure translations between the unified protocol and the Ollama schema."""

import time
import uuid
from typing import Any

from ollama_bridge.relay.models import (
    BackendRequest,
    BackendResponseUnit,
    ResponseChoice,
    ResponseMessage,
    StreamChoice,
    StreamDelta,
    UnifiedChatRequest,
    UnifiedResponse,
    UnifiedStreamChunk,
    Usage,
)

STOP_FINISH_REASON = "stop"


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4().hex}"


def _build_options(request: UnifiedChatRequest) -> dict[str, Any] | None:
    options: dict[str, Any] = {}
    if request.temperature is not None:
        options["temperature"] = request.temperature
    if request.top_p is not None:
        options["top_p"] = request.top_p
    if request.seed is not None:
        options["seed"] = request.seed
    if request.max_tokens is not None:
        options["num_predict"] = request.max_tokens
    if request.stop is not None:
        options["stop"] = [request.stop] if isinstance(request.stop, str) else list(request.stop)
    return options or None


def request_to_backend(request: UnifiedChatRequest) -> BackendRequest:
    """Map a unified chat request onto Ollama's generate request.

    The last system message becomes ``system`` and the last user message
    becomes ``prompt``. Without any user message the legacy ``prompt``
    field of the request is stringified instead. Assistant turns are not
    forwarded.
    """
    prompt = "" if request.prompt is None else str(request.prompt)
    system = None

    for message in request.messages:
        if message.role == "system":
            system = message.content or ""
        elif message.role == "user":
            prompt = message.content or ""

    return BackendRequest(
        model=request.model,
        prompt=prompt,
        system=system,
        stream=request.stream,
        options=_build_options(request),
    )


def _finish_reason(unit: BackendResponseUnit) -> str | None:
    return STOP_FINISH_REASON if unit.done else None


def _usage(unit: BackendResponseUnit) -> Usage:
    prompt_tokens = unit.prompt_eval_count or 0
    completion_tokens = unit.eval_count or 0
    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


def response_to_unified(unit: BackendResponseUnit) -> UnifiedResponse:
    """Map one complete Ollama response onto a unified response."""
    choice = ResponseChoice(
        index=0,
        message=ResponseMessage(role="assistant", content=unit.response),
        finish_reason=_finish_reason(unit),
    )
    return UnifiedResponse(
        id=new_completion_id(),
        created=int(time.time()),
        model=unit.model,
        choices=[choice],
        usage=_usage(unit),
    )


def stream_unit_to_chunk(unit: BackendResponseUnit) -> UnifiedStreamChunk:
    """Map one Ollama stream increment onto a unified stream chunk.

    The delta is the increment's fragment only; the caller owns
    accumulation and the correlation id.
    """
    choice = StreamChoice(
        index=0,
        delta=StreamDelta(content=unit.response),
        finish_reason=_finish_reason(unit),
    )
    return UnifiedStreamChunk(
        created=int(time.time()),
        model=unit.model,
        choices=[choice],
    )
