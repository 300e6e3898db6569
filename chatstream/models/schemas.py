from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HistoryItem(BaseModel):
    """A prior message sent along with a chat request."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request payload for the chat and RAG completion endpoints.

    Attributes:
        message: User's question or prompt.
        history: Prior completed messages, oldest first.
        rag: Whether retrieval-augmented generation is requested.
    """

    message: str = Field(..., min_length=1)
    history: list[HistoryItem] = Field(default_factory=list)
    rag: bool = False

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class SSEFrame(BaseModel):
    """JSON payload of one structured-mode ``data:`` frame.

    Attributes:
        type: Event discriminator (token or sources).
        text: Token text for token frames.
        sources: Citation list for sources frames.
        done: Whether this token frame is the last one.
    """

    type: Literal["token", "sources"]
    text: str = ""
    sources: list[str] = Field(default_factory=list)
    done: bool = False


class MetricsLogPayload(BaseModel):
    """Body sent to the metrics logging endpoint after a completed exchange."""

    message_id: str
    tokens_in: int
    tokens_out: int
    response_time_ms: float
    time_to_first_token_ms: float | None = None


class ErrorLogPayload(BaseModel):
    """Body sent to the error logging endpoint after a failed exchange.

    Attributes:
        error_type: ``api_error`` or ``network_error``.
        status_code: HTTP status, 0 for network failures.
        input_length: Length of the user input in characters.
        timestamp: ISO 8601 time of the failure.
    """

    error_type: Literal["api_error", "network_error"]
    status_code: int = Field(..., ge=0)
    input_length: int = Field(..., ge=0)
    timestamp: str


class HardwareMetricsSnapshot(BaseModel):
    """Normalized hardware metrics of the inference host.

    Every field defaults to zero/false so that an unsupported or failed
    probe still yields a complete snapshot.

    Attributes:
        gpu_utilization: GPU/accelerator utilization percentage.
        gpu_memory_usage: Memory usage percentage.
        cpu_usage: CPU usage of the model-runner process (Apple hosts).
        tokens_per_second: Estimated generation speed.
        inference_active: Whether the model server has an established connection.
        latency: Per-token latency estimate in milliseconds.
        temperature: GPU temperature, 0 when unavailable.
    """

    model_config = ConfigDict(populate_by_name=True)

    gpu_utilization: float = Field(default=0.0, alias="gpuUtilization")
    gpu_memory_usage: float = Field(default=0.0, alias="gpuMemoryUsage")
    cpu_usage: float = Field(default=0.0, alias="cpuUsage")
    tokens_per_second: float = Field(default=0.0, alias="tokensPerSecond")
    inference_active: bool = Field(default=False, alias="inferenceActive")
    latency: float = Field(default=0.0)
    temperature: float = Field(default=0.0)


class MetricsErrorResponse(BaseModel):
    """Structured failure returned by the hardware metrics endpoint."""

    error: str
    message: str
