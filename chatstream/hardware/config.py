"""Hardware metrics configuration with environment variable loading."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


class HardwareConfig(BaseModel):
    """Configuration for hardware probes, the metrics cache and polling.

    Attributes:
        model_server_port: Port whose established connections mark inference as active.
        freshness_window: Seconds a cached snapshot is reused.
        poll_interval: Seconds between dashboard polls.
        command_timeout: Seconds before a probe command is abandoned.
        use_sudo: Run powermetrics through non-interactive sudo.
        llama_log_path: Model runner log scanned for generation speed.
        log_tail_lines: Number of trailing log lines scanned.
    """

    model_server_port: int = Field(
        default_factory=lambda: int(os.getenv("MODEL_SERVER_PORT", "12434")),
        ge=1,
        le=65535,
        description="Model server TCP port",
    )
    freshness_window: float = Field(
        default_factory=lambda: float(os.getenv("METRICS_CACHE_TTL", "0.5")),
        gt=0.0,
        description="Metrics cache freshness window in seconds",
    )
    poll_interval: float = Field(
        default_factory=lambda: float(os.getenv("METRICS_POLL_INTERVAL", "2.0")),
        gt=0.0,
        description="Dashboard polling interval in seconds",
    )
    command_timeout: float = Field(
        default_factory=lambda: float(os.getenv("METRICS_COMMAND_TIMEOUT", "5.0")),
        gt=0.0,
        description="Probe command timeout in seconds",
    )
    use_sudo: bool = Field(
        default_factory=lambda: os.getenv("METRICS_USE_SUDO", "true").lower() == "true",
        description="Invoke powermetrics via sudo -n",
    )
    llama_log_path: str = Field(
        default_factory=lambda: os.getenv(
            "LLAMA_LOG_PATH", "~/.docker/model-runner/logs/llama.log"
        ),
        description="Model runner log file",
    )
    log_tail_lines: int = Field(default=20, ge=1)

    @field_validator("llama_log_path")
    @classmethod
    def expand_user(cls, v: str) -> str:
        return os.path.expanduser(v.strip())


def get_hardware_config() -> HardwareConfig:
    """Create hardware configuration from environment."""
    return HardwareConfig()
