"""Per-request latency and token-count tracking.

Token counts are deliberate approximations: input tokens are estimated at
four characters per token and output tokens count received token events.
Swapping in a real tokenizer changes reported numbers and should be
treated as a behavioural change.
"""

import logging
import math
import time
from collections.abc import Callable

from chatstream.client.reporting import MetricsReporter
from chatstream.models import RequestMetrics

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def estimate_input_tokens(text: str) -> int:
    """Estimate token count from character length (``ceil(len / 4)``)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class RequestMetricsTracker:
    """Owns the metrics record of each in-flight exchange, keyed by request id.

    Finalized records are forwarded to the reporter, when one is attached,
    without waiting for delivery.
    """

    def __init__(
        self,
        reporter: MetricsReporter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reporter = reporter
        self._clock = clock
        self._records: dict[str, RequestMetrics] = {}

    def get(self, request_id: str) -> RequestMetrics | None:
        return self._records.get(request_id)

    def start(self, request_id: str, input_text: str, now: float | None = None) -> RequestMetrics:
        record = RequestMetrics(
            request_id=request_id,
            started_at=self._clock() if now is None else now,
            input_tokens=estimate_input_tokens(input_text),
        )
        self._records[request_id] = record
        return record

    def on_first_token(self, request_id: str, now: float | None = None) -> None:
        """Record the first-token timestamp; later calls are no-ops."""
        record = self._records[request_id]
        if record.first_token_at is None:
            record.first_token_at = self._clock() if now is None else now

    def on_token_observed(self, request_id: str) -> None:
        self._records[request_id].output_tokens += 1

    def finish(self, request_id: str, now: float | None = None) -> RequestMetrics:
        """Finalize a record, hand it to the reporter and stop tracking it.

        Args:
            request_id: Identifier passed to ``start``.
            now: Completion timestamp; defaults to the tracker clock.

        Returns:
            The finalized metrics record.
        """
        record = self._records.pop(request_id)
        record.completed_at = self._clock() if now is None else now
        logger.info(
            f"Request {request_id} finished: {record.input_tokens} tokens in, "
            f"{record.output_tokens} tokens out, "
            f"{record.total_response_time_ms:.0f}ms total, "
            f"ttft={record.time_to_first_token_ms}"
        )
        if self._reporter is not None:
            self._reporter.report_metrics(record)
        return record

    def discard(self, request_id: str) -> None:
        """Drop a record without reporting it (failed or abandoned exchange)."""
        self._records.pop(request_id, None)
