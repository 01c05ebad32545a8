"""Ollama <-> unified chat protocol relay module."""

from ollama_bridge.relay.client import BackendClient
from ollama_bridge.relay.errors import RelayError
from ollama_bridge.relay.handler import relay_single_shot
from ollama_bridge.relay.models import (
    BackendRequest,
    BackendResponseUnit,
    ChatMessage,
    UnifiedChatRequest,
    UnifiedResponse,
    UnifiedStreamChunk,
    Usage,
)
from ollama_bridge.relay.stream import StreamRelay, StreamResult, relay_stream
from ollama_bridge.relay.transform import (
    request_to_backend,
    response_to_unified,
    stream_unit_to_chunk,
)

__all__ = [
    "BackendClient",
    "BackendRequest",
    "BackendResponseUnit",
    "ChatMessage",
    "RelayError",
    "StreamRelay",
    "StreamResult",
    "UnifiedChatRequest",
    "UnifiedResponse",
    "UnifiedStreamChunk",
    "Usage",
    "relay_single_shot",
    "relay_stream",
    "request_to_backend",
    "response_to_unified",
    "stream_unit_to_chunk",
]
