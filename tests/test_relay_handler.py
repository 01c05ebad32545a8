"""Tests for the single-shot relay handler."""

import json

import httpx
import pytest

from ollama_bridge.relay.errors import (
    BACKEND_ERROR,
    CLOSE_RESPONSE_BODY_FAILED,
    READ_RESPONSE_BODY_FAILED,
    UNMARSHAL_RESPONSE_BODY_FAILED,
    RelayError,
)
from ollama_bridge.relay.handler import read_and_close, relay_single_shot


def _ollama_body(**overrides) -> bytes:
    payload = {
        "model": "llama3",
        "created_at": "2024-05-01T12:00:00Z",
        "response": "hello",
        "done": True,
        "prompt_eval_count": 10,
        "eval_count": 5,
    }
    payload.update(overrides)
    return json.dumps(payload).encode("utf-8")


@pytest.mark.asyncio
async def test_complete_response_is_translated():
    upstream = httpx.Response(200, content=_ollama_body())

    response, usage = await relay_single_shot(upstream)

    assert response.status == 200
    assert response.content_type == "application/json"
    body = json.loads(response.text)
    assert body["object"] == "chat.completion"
    assert len(body["choices"]) == 1
    assert body["choices"][0]["message"] == {"role": "assistant", "content": "hello"}
    assert body["choices"][0]["finish_reason"] == "stop"
    assert body["usage"] == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
    assert usage.total_tokens == 15


@pytest.mark.asyncio
async def test_upstream_status_code_is_kept():
    upstream = httpx.Response(203, content=_ollama_body())

    response, _ = await relay_single_shot(upstream)

    assert response.status == 203


@pytest.mark.asyncio
async def test_missing_counters_give_zero_usage():
    upstream = httpx.Response(
        200, content=json.dumps({"model": "llama3", "response": "x", "done": True}).encode()
    )

    _, usage = await relay_single_shot(upstream)

    assert usage.prompt_tokens == 0
    assert usage.completion_tokens == 0
    assert usage.total_tokens == 0


@pytest.mark.asyncio
async def test_not_done_response_has_no_finish_reason():
    upstream = httpx.Response(200, content=_ollama_body(done=False))

    response, _ = await relay_single_shot(upstream)

    assert json.loads(response.text)["choices"][0]["finish_reason"] is None


@pytest.mark.asyncio
async def test_malformed_body_aborts(fake_body):
    upstream = fake_body(content=b"<html>oops</html>")

    with pytest.raises(RelayError) as excinfo:
        await relay_single_shot(upstream)

    assert excinfo.value.code == UNMARSHAL_RESPONSE_BODY_FAILED
    assert excinfo.value.status_code == 500
    assert upstream.close_calls == 1


@pytest.mark.asyncio
async def test_read_failure_aborts(fake_body):
    upstream = fake_body(read_error=httpx.ReadError("reset by peer"))

    with pytest.raises(RelayError) as excinfo:
        await relay_single_shot(upstream)

    assert excinfo.value.code == READ_RESPONSE_BODY_FAILED
    assert "reset by peer" in excinfo.value.message
    assert upstream.close_calls == 1


@pytest.mark.asyncio
async def test_close_failure_aborts(fake_body):
    upstream = fake_body(content=_ollama_body(), close_error=OSError("close failed"))

    with pytest.raises(RelayError) as excinfo:
        await relay_single_shot(upstream)

    assert excinfo.value.code == CLOSE_RESPONSE_BODY_FAILED
    assert upstream.close_calls == 1


@pytest.mark.asyncio
async def test_read_failure_reported_over_close_failure(fake_body):
    upstream = fake_body(read_error=httpx.ReadError("boom"), close_error=OSError("close failed"))

    with pytest.raises(RelayError) as excinfo:
        await read_and_close(upstream)

    assert excinfo.value.code == READ_RESPONSE_BODY_FAILED
    assert upstream.close_calls == 1


@pytest.mark.asyncio
async def test_success_closes_body_once(fake_body):
    upstream = fake_body(content=_ollama_body())

    await relay_single_shot(upstream)

    assert upstream.close_calls == 1


@pytest.mark.asyncio
async def test_embedded_backend_error_is_fatal(fake_body):
    upstream = fake_body(content=b'{"error": "model \\"nope\\" not found"}', status_code=404)

    with pytest.raises(RelayError) as excinfo:
        await relay_single_shot(upstream)

    assert excinfo.value.code == BACKEND_ERROR
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == 'model "nope" not found'


@pytest.mark.asyncio
async def test_embedded_backend_error_with_ok_status_maps_to_500(fake_body):
    upstream = fake_body(content=b'{"error": "out of memory"}', status_code=200)

    with pytest.raises(RelayError) as excinfo:
        await relay_single_shot(upstream)

    assert excinfo.value.status_code == 500
