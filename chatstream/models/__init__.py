"""Pydantic models for chat exchanges and metrics.

Domain models live here; wire-format schemas live in ``schemas``.

Models:
    - ChatMessage: A message in the session transcript
    - TokenEvent / SourcesEvent / EndEvent: Decoded stream events
    - RequestMetrics: Timing and token counts for one exchange
    - SessionState: Lifecycle state of a chat session
"""

import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MessageFinalizedError(RuntimeError):
    """Raised when a finalized message is modified."""

    pass


class SessionState(str, Enum):
    """Lifecycle states of a streaming chat session."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"


class ChatMessage(BaseModel):
    """A single chat message in the conversation.

    Assistant content grows while the response streams and is frozen
    once the exchange ends.

    Attributes:
        id: Opaque message identifier.
        role: The speaker identifier (user or assistant).
        content: The message text.
        sources: Source citations (RAG mode only).
        finalized: Whether the content is frozen.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: Literal["user", "assistant"]
    content: str = ""
    sources: list[str] | None = None
    finalized: bool = False

    def append(self, text: str) -> None:
        """Append streamed text to the message."""
        if self.finalized:
            raise MessageFinalizedError(f"Message {self.id} is finalized")
        self.content += text

    def set_sources(self, sources: list[str]) -> None:
        """Replace the citation list."""
        if self.finalized:
            raise MessageFinalizedError(f"Message {self.id} is finalized")
        self.sources = list(sources)

    def finalize(self) -> None:
        self.finalized = True


class TokenEvent(BaseModel):
    """An increment of text to append to the live message."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["token"] = "token"
    text: str


class SourcesEvent(BaseModel):
    """Replacement citation list for the live message."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["sources"] = "sources"
    sources: tuple[str, ...]


class EndEvent(BaseModel):
    """Terminal event of a stream."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["end"] = "end"


StreamEvent = TokenEvent | SourcesEvent | EndEvent


class RequestMetrics(BaseModel):
    """Timing and token measurements for one request/response exchange.

    Timestamps come from a monotonic clock in seconds. Token counts are
    approximations: ``input_tokens`` assumes four characters per token and
    ``output_tokens`` counts received token events, not tokenizer output.

    Attributes:
        request_id: Identifier of the user-initiated send.
        started_at: Request start timestamp.
        first_token_at: Timestamp of the first non-empty token, if any.
        completed_at: Completion timestamp, set by finish.
        input_tokens: Estimated input token count.
        output_tokens: Number of token events observed.
    """

    request_id: str
    started_at: float
    first_token_at: float | None = None
    completed_at: float | None = None
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    @property
    def time_to_first_token_ms(self) -> float | None:
        if self.first_token_at is None:
            return None
        return max(0.0, (self.first_token_at - self.started_at) * 1000)

    @property
    def total_response_time_ms(self) -> float | None:
        if self.completed_at is None:
            return None
        return max(0.0, (self.completed_at - self.started_at) * 1000)
