"""Wire models for the unified chat protocol and the Ollama generate API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """A single message in a unified chat request."""

    model_config = ConfigDict(frozen=True)

    # Only system and user turns are forwarded; other roles pass through unread
    role: str
    content: str | None = None


class UnifiedChatRequest(BaseModel):
    """Incoming chat-completion request in the unified protocol."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    model: str = ""
    messages: tuple[ChatMessage, ...] = Field(default_factory=tuple)
    stream: bool = False
    # Legacy completions-style free-text prompt
    prompt: Any = None

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stop: str | list[str] | None = None
    seed: int | None = None


class BackendRequest(BaseModel):
    """Request body for Ollama's /api/generate endpoint."""

    model: str
    prompt: str
    system: str | None = None
    template: str | None = None
    context: list[int] | None = None
    stream: bool
    options: dict[str, Any] | None = None


class BackendResponseUnit(BaseModel):
    """One JSON object from Ollama: a full response or one stream increment.

    Durations are nanoseconds as reported by the backend.
    """

    model_config = ConfigDict(extra="ignore")

    model: str = ""
    created_at: str | None = None
    response: str = ""
    done: bool = False
    context: list[int] | None = None

    total_duration: int | None = None
    load_duration: int | None = None
    prompt_eval_count: int | None = None
    prompt_eval_duration: int | None = None
    eval_count: int | None = None
    eval_duration: int | None = None

    error: str | None = None


class StreamDelta(BaseModel):
    content: str | None = ""


class StreamChoice(BaseModel):
    index: int = 0
    delta: StreamDelta = Field(default_factory=StreamDelta)
    finish_reason: str | None = None


class UnifiedStreamChunk(BaseModel):
    """One event payload of a unified streaming response."""

    id: str = ""
    object: str = "chat.completion.chunk"
    created: int
    model: str = ""
    choices: list[StreamChoice] = Field(default_factory=list)


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMessage(BaseModel):
    role: str = "assistant"
    content: str | None = ""


class ResponseChoice(BaseModel):
    index: int = 0
    message: ResponseMessage = Field(default_factory=ResponseMessage)
    finish_reason: str | None = None


class UnifiedResponse(BaseModel):
    """Single-shot chat-completion response in the unified protocol."""

    id: str = ""
    object: str = "chat.completion"
    created: int
    model: str = ""
    choices: list[ResponseChoice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
