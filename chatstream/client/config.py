"""Chat client configuration with environment variable loading.

Pydantic-based configuration for streaming chat sessions and the
metrics side-channel.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_APOLOGY = "Sorry, there was an error processing your request. Please try again."


class ClientConfig(BaseModel):
    """Configuration for the streaming chat client.

    Attributes:
        api_base_url: Base URL of the chat/RAG server.
        chat_path: Plain-mode completion endpoint path.
        rag_path: Structured-mode (SSE) RAG endpoint path.
        metrics_log_path: Endpoint receiving per-request metrics.
        error_log_path: Endpoint receiving exchange failures.
        request_timeout: HTTP timeout in seconds.
        history_limit: Number of prior messages sent as history.
        apology_message: Text shown in place of a failed response.
    """

    api_base_url: str = Field(
        default_factory=lambda: os.getenv("CHAT_API_BASE_URL", "http://localhost:8080"),
        description="Base URL of the chat server",
    )
    chat_path: str = Field(
        default_factory=lambda: os.getenv("CHAT_API_PATH", "/api/chat"),
        description="Plain-mode chat endpoint",
    )
    rag_path: str = Field(
        default_factory=lambda: os.getenv("RAG_API_PATH", "/api/rag/stream"),
        description="Structured-mode RAG endpoint",
    )
    metrics_log_path: str = Field(
        default_factory=lambda: os.getenv("METRICS_LOG_PATH", "/metrics/log"),
        description="Metrics logging endpoint",
    )
    error_log_path: str = Field(
        default_factory=lambda: os.getenv("METRICS_ERROR_PATH", "/metrics/log-error"),
        description="Error logging endpoint",
    )
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("CHAT_REQUEST_TIMEOUT", "120.0")),
        gt=0.0,
        description="HTTP timeout in seconds",
    )
    history_limit: int = Field(
        default_factory=lambda: int(os.getenv("CHAT_HISTORY_LIMIT", "20")),
        ge=0,
        description="Prior messages included as conversation history",
    )
    apology_message: str = Field(
        default=DEFAULT_APOLOGY,
        description="User-visible text for failed exchanges",
    )

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended."""
        v = v.strip()
        if not v:
            raise ValueError("API base URL required. Set CHAT_API_BASE_URL in .env")
        return v.rstrip("/")

    @field_validator("chat_path", "rag_path", "metrics_log_path", "error_log_path")
    @classmethod
    def ensure_leading_slash(cls, v: str) -> str:
        v = v.strip()
        return v if v.startswith("/") else f"/{v}"


def get_client_config() -> ClientConfig:
    """Create client configuration from environment.

    Returns:
        Configured ClientConfig instance.
    """
    return ClientConfig()
