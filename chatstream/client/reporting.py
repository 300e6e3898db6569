"""Fire-and-forget reporting of request metrics and exchange failures.

Reporting never blocks stream processing: each report runs as its own
background task and any failure is logged and discarded.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Literal, Protocol

import httpx

from chatstream.client.config import ClientConfig
from chatstream.models import RequestMetrics
from chatstream.models.schemas import ErrorLogPayload, MetricsLogPayload

logger = logging.getLogger(__name__)


class MetricsSink(Protocol):
    """Destination for finalized metrics and exchange failures."""

    async def log_metrics(self, payload: MetricsLogPayload) -> None: ...

    async def log_error(self, payload: ErrorLogPayload) -> None: ...


class HttpMetricsSink:
    """Posts metrics and errors as JSON to the server's logging endpoints."""

    def __init__(self, client: httpx.AsyncClient, config: ClientConfig) -> None:
        self._client = client
        self._config = config

    async def log_metrics(self, payload: MetricsLogPayload) -> None:
        await self._post(self._config.metrics_log_path, payload.model_dump())

    async def log_error(self, payload: ErrorLogPayload) -> None:
        await self._post(self._config.error_log_path, payload.model_dump())

    async def _post(self, path: str, body: dict) -> None:
        response = await self._client.post(f"{self._config.api_base_url}{path}", json=body)
        response.raise_for_status()


def build_metrics_payload(record: RequestMetrics) -> MetricsLogPayload:
    return MetricsLogPayload(
        message_id=record.request_id,
        tokens_in=record.input_tokens,
        tokens_out=record.output_tokens,
        response_time_ms=record.total_response_time_ms or 0.0,
        time_to_first_token_ms=record.time_to_first_token_ms,
    )


def build_error_payload(
    error_type: Literal["api_error", "network_error"],
    status_code: int,
    input_length: int,
) -> ErrorLogPayload:
    return ErrorLogPayload(
        error_type=error_type,
        status_code=status_code,
        input_length=input_length,
        timestamp=datetime.now(UTC).isoformat(),
    )


class MetricsReporter:
    """Dispatches sink calls as background tasks.

    Keeps references to pending tasks so they are not garbage collected
    mid-flight, and so callers can wait for delivery with ``drain``.
    """

    def __init__(self, sink: MetricsSink) -> None:
        self._sink = sink
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def report_metrics(self, record: RequestMetrics) -> None:
        self._dispatch(self._sink.log_metrics(build_metrics_payload(record)), "metrics")

    def report_error(
        self,
        error_type: Literal["api_error", "network_error"],
        status_code: int,
        input_length: int,
    ) -> None:
        payload = build_error_payload(error_type, status_code, input_length)
        self._dispatch(self._sink.log_error(payload), "error")

    async def drain(self) -> None:
        """Wait for all reports dispatched so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(self, coro, kind: str) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(coro, kind))
        except RuntimeError:
            coro.close()
            logger.warning(f"No running event loop, dropping {kind} report")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, coro, kind: str) -> None:
        try:
            await coro
        except Exception as e:
            logger.warning(f"Failed to deliver {kind} report: {e}")
