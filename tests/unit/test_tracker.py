"""Unit tests for RequestMetricsTracker."""

from unittest.mock import MagicMock

import pytest
import pytest_check as check

from chatstream.client.reporting import MetricsReporter
from chatstream.client.tracker import RequestMetricsTracker, estimate_input_tokens


class TestEstimateInputTokens:
    """Tests for the four-characters-per-token heuristic."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("", 0), ("abc", 1), ("abcd", 1), ("hello", 2), ("x" * 9, 3)],
    )
    def test_rounds_up(self, text: str, expected: int) -> None:
        """Input estimate is characters over four, rounded up."""
        assert estimate_input_tokens(text) == expected


class TestRequestMetricsTracker:
    """Tests for per-request timing and token counts."""

    def test_start_records_time_and_estimate(self) -> None:
        """start stores the send time and input estimate."""
        tracker = RequestMetricsTracker()

        record = tracker.start("req-1", "hello", now=10.0)

        check.equal(record.started_at, 10.0)
        check.equal(record.input_tokens, 2)
        check.equal(record.output_tokens, 0)
        check.is_none(record.first_token_at)

    def test_first_token_is_recorded_once(self) -> None:
        """Only the first token sets the first-token time."""
        tracker = RequestMetricsTracker()
        tracker.start("req-1", "hi", now=0.0)

        tracker.on_first_token("req-1", now=0.25)
        tracker.on_first_token("req-1", now=0.5)
        tracker.on_first_token("req-1", now=0.75)

        assert tracker.get("req-1").first_token_at == 0.25

    def test_token_observations_count_events(self) -> None:
        """Every observed token event is counted."""
        tracker = RequestMetricsTracker()
        tracker.start("req-1", "hi", now=0.0)

        for _ in range(3):
            tracker.on_token_observed("req-1")

        assert tracker.get("req-1").output_tokens == 3

    def test_finish_computes_durations(self) -> None:
        """finish derives both durations in milliseconds."""
        tracker = RequestMetricsTracker()
        tracker.start("req-1", "hi", now=1.0)
        tracker.on_first_token("req-1", now=1.2)

        record = tracker.finish("req-1", now=1.5)

        check.equal(record.time_to_first_token_ms, pytest.approx(200.0))
        check.equal(record.total_response_time_ms, pytest.approx(500.0))
        check.is_none(tracker.get("req-1"))

    @pytest.mark.parametrize(("first", "done"), [(0.0, 0.0), (0.1, 0.1), (0.3, 2.0), (1.0, 1.5)])
    def test_total_time_bounds_time_to_first_token(self, first: float, done: float) -> None:
        """Total time is never below time to first token."""
        tracker = RequestMetricsTracker()
        tracker.start("req", "x", now=0.0)
        tracker.on_first_token("req", now=first)

        record = tracker.finish("req", now=done)

        assert record.total_response_time_ms >= record.time_to_first_token_ms >= 0

    def test_time_to_first_token_unset_without_tokens(self) -> None:
        """No tokens leaves time to first token unset."""
        tracker = RequestMetricsTracker()
        tracker.start("req", "x", now=0.0)

        record = tracker.finish("req", now=0.4)

        check.is_none(record.time_to_first_token_ms)
        check.equal(record.total_response_time_ms, pytest.approx(400.0))

    def test_uses_injected_clock(self) -> None:
        """Timing comes from the injected clock."""
        times = iter([5.0, 5.1, 5.3])
        tracker = RequestMetricsTracker(clock=lambda: next(times))

        tracker.start("req", "x")
        tracker.on_first_token("req")
        record = tracker.finish("req")

        check.equal(record.started_at, 5.0)
        check.equal(record.first_token_at, 5.1)
        check.equal(record.completed_at, 5.3)

    def test_finish_forwards_to_reporter(self) -> None:
        """A finished record goes to the reporter."""
        reporter = MagicMock(spec=MetricsReporter)
        tracker = RequestMetricsTracker(reporter=reporter)
        tracker.start("req", "x", now=0.0)

        record = tracker.finish("req", now=1.0)

        reporter.report_metrics.assert_called_once_with(record)

    def test_discard_drops_without_reporting(self) -> None:
        """A discarded record is never reported."""
        reporter = MagicMock(spec=MetricsReporter)
        tracker = RequestMetricsTracker(reporter=reporter)
        tracker.start("req", "x", now=0.0)

        tracker.discard("req")
        tracker.discard("req")

        check.is_none(tracker.get("req"))
        reporter.report_metrics.assert_not_called()

    def test_unknown_request_raises(self) -> None:
        """Unknown request ids raise KeyError."""
        tracker = RequestMetricsTracker()

        with pytest.raises(KeyError):
            tracker.on_token_observed("missing")
