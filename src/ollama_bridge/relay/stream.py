"""Streaming relay: Ollama NDJSON lines in, unified server-sent events out.

Two tasks cooperate per stream. The reader task pulls lines from the
upstream body and hands them over through a bounded queue; the emitting
side (the caller's task) decodes, translates and writes one event per line.
The queue is the only thing the two share. Once the reader has exhausted
the upstream body it enqueues an end-of-stream marker and the emitter
writes the ``[DONE]`` sentinel. The ``done`` flag inside a backend object
only sets ``finish_reason``; it never ends the stream.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from ollama_bridge.relay.errors import (
    CLOSE_RESPONSE_BODY_FAILED,
    READ_RESPONSE_BODY_FAILED,
    RelayError,
    error_wrapper,
)
from ollama_bridge.relay.framing import DONE_EVENT, format_event
from ollama_bridge.relay.models import BackendResponseUnit
from ollama_bridge.relay.transform import new_completion_id, stream_unit_to_chunk

logger = structlog.get_logger()

# Shorter lines are blank or garbage, not backend objects.
MIN_LINE_LENGTH = 5

_END_OF_STREAM = object()


@dataclass(slots=True)
class _ReadFailure:
    """Queue item carrying an upstream read error to the emitting side."""

    error: Exception


@dataclass(slots=True)
class StreamResult:
    """Outcome of one relayed stream."""

    text: str = ""
    chunk_count: int = 0
    done_sent: bool = False
    client_disconnected: bool = False


class StreamRelay:
    """Relay one upstream Ollama stream to one downstream event writer.

    Args:
        body: Upstream response opened in stream mode. Anything with
            ``aiter_lines()`` and an async ``aclose()``, normally an
            ``httpx.Response``.
        writer: Downstream sink with an async ``write(bytes)``, normally a
            prepared ``aiohttp.web.StreamResponse``.
        queue_size: Capacity of the hand-off queue. The reader blocks when
            it is full.
        min_line_length: Lines shorter than this are dropped unread.
        completion_id: Correlation id shared by every chunk of the stream.
    """

    def __init__(
        self,
        body,
        writer,
        *,
        queue_size: int = 1,
        min_line_length: int = MIN_LINE_LENGTH,
        completion_id: str | None = None,
    ) -> None:
        self._body = body
        self._writer = writer
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._min_line_length = min_line_length
        self._completion_id = completion_id or new_completion_id()
        # Owned by the emitting side only
        self._parts: list[str] = []
        self._result = StreamResult()

    @property
    def completion_id(self) -> str:
        return self._completion_id

    @property
    def text(self) -> str:
        return "".join(self._parts)

    async def run(self) -> StreamResult:
        """Relay until the upstream is exhausted, then release the body.

        Returns:
            StreamResult with the accumulated text.

        Raises:
            RelayError: reading or closing the upstream body failed. The
                error carries the text accumulated so far and nothing more
                is written after it.
        """
        logger.debug("stream_relay_start", completion_id=self._completion_id)
        reader = asyncio.create_task(self._read_lines())
        try:
            await self._emit()
        except BaseException:
            await self._stop_reader(reader)
            await self._release_body(raise_on_error=False)
            raise
        await self._stop_reader(reader)
        await self._release_body()

        self._result.text = self.text
        logger.info(
            "stream_relay_complete",
            completion_id=self._completion_id,
            chunk_count=self._result.chunk_count,
            text_length=len(self._result.text),
            done_sent=self._result.done_sent,
            client_disconnected=self._result.client_disconnected,
        )
        return self._result

    async def _read_lines(self) -> None:
        try:
            async for line in self._body.aiter_lines():
                line = line.rstrip("\r\n")
                if len(line) < self._min_line_length:
                    continue
                await self._queue.put(line)
        except Exception as exc:
            await self._queue.put(_ReadFailure(exc))
            return
        await self._queue.put(_END_OF_STREAM)

    async def _emit(self) -> None:
        while True:
            item = await self._queue.get()

            if item is _END_OF_STREAM:
                if await self._write(DONE_EVENT):
                    self._result.done_sent = True
                return

            if isinstance(item, _ReadFailure):
                logger.error(
                    "stream_body_read_failed",
                    completion_id=self._completion_id,
                    error=str(item.error),
                    chunk_count=self._result.chunk_count,
                )
                error = error_wrapper(item.error, READ_RESPONSE_BODY_FAILED)
                error.partial_text = self.text
                raise error from item.error

            payload = self._translate(item)
            if payload is None:
                continue
            if not await self._write(format_event(payload)):
                return
            self._result.chunk_count += 1

    def _translate(self, line: str) -> str | None:
        """Decode, translate and serialize one line. None drops the line."""
        try:
            unit = BackendResponseUnit.model_validate_json(line)
        except ValidationError as exc:
            logger.error(
                "stream_unit_decode_failed",
                completion_id=self._completion_id,
                error=str(exc),
                line_preview=line[:100],
            )
            return None

        if unit.error:
            logger.warning(
                "stream_unit_backend_error",
                completion_id=self._completion_id,
                error=unit.error,
            )
            return None

        chunk = stream_unit_to_chunk(unit)
        if chunk.choices:
            self._parts.append(chunk.choices[0].delta.content)
        chunk.id = self._completion_id

        try:
            return chunk.model_dump_json()
        except (PydanticSerializationError, ValueError) as exc:
            logger.error(
                "stream_chunk_encode_failed",
                completion_id=self._completion_id,
                error=str(exc),
            )
            return None

    async def _write(self, event: bytes) -> bool:
        try:
            await self._writer.write(event)
        except ConnectionResetError:
            logger.warning(
                "stream_client_disconnected",
                completion_id=self._completion_id,
                chunk_count=self._result.chunk_count,
            )
            self._result.client_disconnected = True
            return False
        return True

    @staticmethod
    async def _stop_reader(reader: asyncio.Task) -> None:
        # A reader blocked on a full queue is abandoned here, not leaked.
        if not reader.done():
            reader.cancel()
        await asyncio.wait({reader})

    async def _release_body(self, raise_on_error: bool = True) -> None:
        try:
            await self._body.aclose()
        except Exception as exc:
            logger.error(
                "stream_body_close_failed",
                completion_id=self._completion_id,
                error=str(exc),
            )
            if raise_on_error:
                error = error_wrapper(exc, CLOSE_RESPONSE_BODY_FAILED)
                error.partial_text = self.text
                raise error from exc


async def relay_stream(body, writer, **kwargs) -> StreamResult:
    """Relay an upstream Ollama stream to ``writer``. See StreamRelay."""
    return await StreamRelay(body, writer, **kwargs).run()
