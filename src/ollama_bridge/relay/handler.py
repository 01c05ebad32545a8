"""Single-shot relay: one Ollama JSON document in, one unified response out."""

from __future__ import annotations

import httpx
import structlog
from aiohttp import web
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from ollama_bridge.relay.errors import (
    BACKEND_ERROR,
    CLOSE_RESPONSE_BODY_FAILED,
    MARSHAL_RESPONSE_BODY_FAILED,
    READ_RESPONSE_BODY_FAILED,
    UNMARSHAL_RESPONSE_BODY_FAILED,
    RelayError,
    error_wrapper,
)
from ollama_bridge.relay.models import BackendResponseUnit, Usage
from ollama_bridge.relay.transform import response_to_unified

logger = structlog.get_logger()


async def read_and_close(upstream: httpx.Response) -> bytes:
    """Read the whole upstream body and release it exactly once.

    Raises:
        RelayError: read_response_body_failed or close_response_body_failed.
    """
    read_error: Exception | None = None
    body = b""
    try:
        body = await upstream.aread()
    except Exception as exc:
        read_error = exc

    try:
        await upstream.aclose()
    except Exception as exc:
        if read_error is None:
            raise error_wrapper(exc, CLOSE_RESPONSE_BODY_FAILED) from exc
        logger.error("single_shot_body_close_failed", error=str(exc))

    if read_error is not None:
        raise error_wrapper(read_error, READ_RESPONSE_BODY_FAILED) from read_error
    return body


async def relay_single_shot(upstream: httpx.Response) -> tuple[web.Response, Usage]:
    """Translate a complete Ollama response into a unified JSON response.

    All-or-nothing: any failure raises before a response object exists.

    Returns:
        The aiohttp response (carrying the upstream status code) and the
        usage accounting extracted from the backend counters.

    Raises:
        RelayError: on read, close, decode or encode failure, or when the
            backend embedded an error in its reply.
    """
    body = await read_and_close(upstream)

    try:
        unit = BackendResponseUnit.model_validate_json(body)
    except ValidationError as exc:
        logger.error("single_shot_decode_failed", error=str(exc), body_preview=body[:200])
        raise error_wrapper(exc, UNMARSHAL_RESPONSE_BODY_FAILED) from exc

    if unit.error:
        status = upstream.status_code if upstream.status_code >= 400 else 500
        logger.warning("single_shot_backend_error", error=unit.error, status_code=status)
        raise RelayError(unit.error, BACKEND_ERROR, status)

    unified = response_to_unified(unit)
    try:
        payload = unified.model_dump_json()
    except (PydanticSerializationError, ValueError) as exc:
        logger.error("single_shot_encode_failed", error=str(exc))
        raise error_wrapper(exc, MARSHAL_RESPONSE_BODY_FAILED) from exc

    logger.info(
        "single_shot_relay_complete",
        model=unit.model,
        status_code=upstream.status_code,
        finish_reason=unified.choices[0].finish_reason,
        prompt_tokens=unified.usage.prompt_tokens,
        completion_tokens=unified.usage.completion_tokens,
    )
    response = web.Response(
        status=upstream.status_code,
        text=payload,
        content_type="application/json",
    )
    return response, unified.usage
