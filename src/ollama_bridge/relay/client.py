"""HTTP client for the Ollama generate API."""

from __future__ import annotations

import httpx
import structlog

from ollama_bridge.config import Settings
from ollama_bridge.relay.errors import DO_REQUEST_FAILED, error_wrapper
from ollama_bridge.relay.models import BackendRequest

logger = structlog.get_logger()

GENERATE_PATH = "/api/generate"


class BackendClient:
    """Async client that opens Ollama generate responses for relaying.

    The response is returned unread so the caller decides between the
    single-shot and streaming paths and owns releasing the body.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=settings.ollama_timeout,
        )

    async def open_generate(self, request: BackendRequest) -> httpx.Response:
        """POST a generate request and return the response in stream mode.

        Raises:
            RelayError: do_request_failed when the request cannot be sent.
        """
        payload = request.model_dump(exclude_none=True)
        logger.info(
            "backend_request_start",
            model=request.model,
            stream=request.stream,
            has_system=request.system is not None,
            has_options=request.options is not None,
        )

        http_request = self._client.build_request(
            "POST", f"{self._base_url}{GENERATE_PATH}", json=payload
        )
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.HTTPError as exc:
            logger.error("backend_request_failed", model=request.model, error=str(exc))
            raise error_wrapper(exc, DO_REQUEST_FAILED) from exc

        logger.debug(
            "backend_response_opened",
            model=request.model,
            status_code=response.status_code,
        )
        return response

    async def close(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()
