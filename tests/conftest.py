"""Pytest fixtures for ollama-bridge tests."""

import json
import os
from unittest.mock import patch

import pytest

from ollama_bridge.config import Settings


@pytest.fixture
def mock_env_vars():
    """Mock environment variables for testing."""
    env_vars = {
        "OLLAMA_BASE_URL": "http://ollama.test:11434",
        "HOST": "127.0.0.1",
        "PORT": "3000",
        "LOG_LEVEL": "DEBUG",
    }
    with patch.dict(os.environ, env_vars, clear=False):
        yield env_vars


@pytest.fixture
def settings(mock_env_vars) -> Settings:
    """Create Settings instance with mocked environment."""
    return Settings()


def make_unit_line(text: str, done: bool = False, model: str = "llama3", **extra) -> str:
    """Build one NDJSON line as Ollama's /api/generate emits it."""
    payload = {
        "model": model,
        "created_at": "2024-05-01T12:00:00.123456789Z",
        "response": text,
        "done": done,
        **extra,
    }
    return json.dumps(payload)


class FakeUpstreamBody:
    """In-memory stand-in for an httpx response body opened in stream mode."""

    def __init__(
        self,
        lines=(),
        *,
        content: bytes = b"",
        status_code: int = 200,
        read_error: Exception | None = None,
        close_error: Exception | None = None,
    ) -> None:
        self.lines = list(lines)
        self.content = content
        self.status_code = status_code
        self.read_error = read_error
        self.close_error = close_error
        self.lines_read = 0
        self.close_calls = 0

    async def aiter_lines(self):
        for line in self.lines:
            self.lines_read += 1
            yield line
        if self.read_error is not None:
            raise self.read_error

    async def aread(self) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        return self.content

    async def aclose(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class RecordingWriter:
    """Downstream sink that records every framed event it is given."""

    def __init__(self, fail_on_write: int | None = None, body: FakeUpstreamBody | None = None):
        self.events: list[bytes] = []
        self.fail_on_write = fail_on_write
        self.body = body
        # Upstream lines read at the moment of each write
        self.lines_read_at_write: list[int] = []
        self.write_calls = 0

    async def write(self, data: bytes) -> None:
        self.write_calls += 1
        if self.fail_on_write is not None and self.write_calls >= self.fail_on_write:
            raise ConnectionResetError("Cannot write to closing transport")
        if self.body is not None:
            self.lines_read_at_write.append(self.body.lines_read)
        self.events.append(data)

    def payloads(self) -> list[str]:
        result = []
        for event in self.events:
            text = event.decode("utf-8")
            assert text.startswith("data: ")
            assert text.endswith("\n\n")
            result.append(text[len("data: "):-2])
        return result

    def chunks(self) -> list[dict]:
        return [json.loads(p) for p in self.payloads() if p != "[DONE]"]


@pytest.fixture
def unit_line():
    return make_unit_line


@pytest.fixture
def fake_body():
    return FakeUpstreamBody


@pytest.fixture
def recording_writer():
    return RecordingWriter
