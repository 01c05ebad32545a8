"""Application entrypoint - aiohttp server relaying chat completions to Ollama."""

import json
import logging

import httpx
import structlog
from aiohttp import web
from aiohttp.web import Application, Request, Response, StreamResponse, run_app

from ollama_bridge.config import Settings, get_settings
from ollama_bridge.relay import (
    BackendClient,
    RelayError,
    UnifiedChatRequest,
    relay_single_shot,
    relay_stream,
    request_to_backend,
)
from ollama_bridge.relay.errors import BAD_RESPONSE_STATUS_CODE, INVALID_REQUEST
from ollama_bridge.relay.framing import prepare_event_stream
from ollama_bridge.relay.handler import read_and_close


def configure_logging(
    log_level: str = "INFO",
    log_file: str = "",
    log_file_max_bytes: int = 10_485_760,
    log_file_backup_count: int = 5,
) -> None:
    """Configure structlog and standard library logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file. Empty string = console only.
        log_file_max_bytes: Max size per log file before rotation (default: 10 MB)
        log_file_backup_count: Number of rotated backup files to keep (default: 5)
    """
    from logging.handlers import RotatingFileHandler
    from pathlib import Path

    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter("%(message)s")

    root_logger = logging.root
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                filename=log_file,
                maxBytes=log_file_max_bytes,
                backupCount=log_file_backup_count,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            # JSON lines in files, human-readable on the console
            structlog.processors.JSONRenderer() if log_file else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def error_response(error: RelayError) -> Response:
    return web.json_response(error.to_dict(), status=error.status_code)


async def _backend_status_error(upstream: httpx.Response) -> RelayError:
    """Build the error for a non-200 backend reply, releasing its body."""
    body = await read_and_close(upstream)
    message = f"bad response status code {upstream.status_code}"
    try:
        detail = json.loads(body)
    except ValueError:
        detail = None
    if isinstance(detail, dict) and detail.get("error"):
        message = str(detail["error"])
    return RelayError(message, BAD_RESPONSE_STATUS_CODE, upstream.status_code)


async def _stream_completion(
    request: Request, upstream: httpx.Response, settings: Settings
) -> StreamResponse:
    try:
        stream_response = await prepare_event_stream(request)
    except BaseException:
        await upstream.aclose()
        raise

    try:
        result = await relay_stream(
            upstream,
            stream_response,
            queue_size=settings.relay_queue_size,
            min_line_length=settings.relay_min_line_length,
        )
    except RelayError as e:
        # Headers are already sent; the client sees a stream without [DONE].
        logger.error(
            "chat_stream_truncated",
            code=e.code,
            error=e.message,
            partial_text_length=len(e.partial_text),
        )
        return stream_response

    logger.info(
        "chat_stream_served",
        chunk_count=result.chunk_count,
        text_length=len(result.text),
        client_disconnected=result.client_disconnected,
    )
    return stream_response


async def chat_completions(request: Request) -> StreamResponse:
    """Relay a unified chat-completion request to Ollama."""
    settings: Settings = request.app["settings"]
    backend: BackendClient = request.app["backend_client"]

    try:
        chat_request = UnifiedChatRequest.model_validate(await request.json())
    except ValueError as e:
        logger.warning("chat_request_invalid", error=str(e))
        return error_response(RelayError(str(e), INVALID_REQUEST, 400))

    logger.info(
        "chat_request_received",
        model=chat_request.model,
        message_count=len(chat_request.messages),
        stream=chat_request.stream,
    )

    try:
        upstream = await backend.open_generate(request_to_backend(chat_request))
        if upstream.status_code != 200:
            raise await _backend_status_error(upstream)
    except RelayError as e:
        return error_response(e)

    if chat_request.stream:
        return await _stream_completion(request, upstream, settings)

    try:
        response, usage = await relay_single_shot(upstream)
    except RelayError as e:
        return error_response(e)

    logger.info(
        "chat_completion_served",
        model=chat_request.model,
        total_tokens=usage.total_tokens,
    )
    return response


async def health(request: Request) -> Response:
    """Health check endpoint."""
    return web.json_response({"status": "healthy"})


async def _close_backend_client(app: Application) -> None:
    await app["backend_client"].close()


def create_app(
    settings: Settings | None = None,
    backend_client: BackendClient | None = None,
) -> Application:
    """Create and configure the aiohttp application."""
    settings = settings or get_settings()

    app = Application()
    app["settings"] = settings
    app["backend_client"] = backend_client or BackendClient(settings)
    app.on_cleanup.append(_close_backend_client)

    app.router.add_post("/v1/chat/completions", chat_completions)
    app.router.add_get("/health", health)

    logger.info("relay_app_created", backend_url=settings.ollama_base_url)
    return app


def main() -> None:
    """Run the relay server."""
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    logger.info(
        "starting_relay_server",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )

    app = create_app(settings)
    run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
