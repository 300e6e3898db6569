"""Unit tests for the fire-and-forget metrics side-channel."""

import json
import logging

import httpx
import pytest
import pytest_check as check

from chatstream.client.config import ClientConfig
from chatstream.client.reporting import HttpMetricsSink, MetricsReporter, build_metrics_payload
from chatstream.models import RequestMetrics


def finished_record() -> RequestMetrics:
    return RequestMetrics(
        request_id="req-1",
        started_at=0.0,
        first_token_at=0.1,
        completed_at=0.6,
        input_tokens=2,
        output_tokens=5,
    )


class TestBuildPayload:
    def test_maps_record_fields(self) -> None:
        """A record maps onto the metrics payload."""
        payload = build_metrics_payload(finished_record())

        check.equal(payload.message_id, "req-1")
        check.equal(payload.tokens_in, 2)
        check.equal(payload.tokens_out, 5)
        check.equal(payload.response_time_ms, pytest.approx(600.0))
        check.equal(payload.time_to_first_token_ms, pytest.approx(100.0))


class TestMetricsReporter:
    """Tests for background delivery."""

    async def test_delivers_metrics_and_errors(self, sink) -> None:
        """Metrics and errors both reach the sink."""
        reporter = MetricsReporter(sink)

        reporter.report_metrics(finished_record())
        reporter.report_error("api_error", 503, 12)
        await reporter.drain()

        check.equal(len(sink.metrics), 1)
        check.equal(sink.errors[0].error_type, "api_error")
        check.equal(sink.errors[0].status_code, 503)
        check.equal(sink.errors[0].input_length, 12)
        check.equal(reporter.pending, 0)

    async def test_report_does_not_wait_for_delivery(self, sink) -> None:
        """report returns before the sink finishes."""
        reporter = MetricsReporter(sink)

        reporter.report_metrics(finished_record())

        check.equal(sink.metrics, [])
        check.equal(reporter.pending, 1)
        await reporter.drain()
        check.equal(len(sink.metrics), 1)

    async def test_sink_failure_is_logged_and_swallowed(
        self, sink, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Sink failures are logged and not raised."""
        sink.fail = True
        reporter = MetricsReporter(sink)

        with caplog.at_level(logging.WARNING):
            reporter.report_metrics(finished_record())
            reporter.report_error("network_error", 0, 3)
            await reporter.drain()

        assert "Failed to deliver metrics report" in caplog.text
        assert "Failed to deliver error report" in caplog.text

    def test_report_without_event_loop_is_dropped(
        self, sink, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Reports outside an event loop are dropped with a warning."""
        reporter = MetricsReporter(sink)

        with caplog.at_level(logging.WARNING):
            reporter.report_metrics(finished_record())

        check.equal(reporter.pending, 0)
        check.is_in("No running event loop", caplog.text)


class TestHttpMetricsSink:
    """Tests for posting reports to the server's logging endpoints."""

    async def test_posts_json_to_configured_paths(self) -> None:
        """The HTTP sink posts JSON to the configured paths."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        config = ClientConfig(api_base_url="http://chat.test")
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            reporter = MetricsReporter(HttpMetricsSink(client, config))
            reporter.report_metrics(finished_record())
            reporter.report_error("network_error", 0, 5)
            await reporter.drain()

        by_path = {r.url.path: json.loads(r.content) for r in requests}
        check.equal(by_path["/metrics/log"]["message_id"], "req-1")
        check.equal(by_path["/metrics/log"]["tokens_out"], 5)
        check.equal(by_path["/metrics/log-error"]["error_type"], "network_error")
        check.equal(by_path["/metrics/log-error"]["status_code"], 0)

    async def test_server_error_does_not_escape_reporter(self) -> None:
        """A server error from the sink stays inside the reporter."""
        config = ClientConfig(api_base_url="http://chat.test")
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport) as client:
            reporter = MetricsReporter(HttpMetricsSink(client, config))
            reporter.report_metrics(finished_record())
            await reporter.drain()

        assert reporter.pending == 0
