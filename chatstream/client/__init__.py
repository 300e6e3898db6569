"""Client-side protocol for streamed chat responses.

Responsibilities:
    - Decoding plain and server-sent-event response bodies into events
    - Applying events to the live assistant message
    - Correlating each exchange with latency and token-count metrics
    - Reporting metrics and failures without blocking the stream

Keeps the HTTP endpoints themselves as black-box collaborators.
"""

from chatstream.client.config import ClientConfig, get_client_config
from chatstream.client.decoder import StreamDecoder, StreamMode
from chatstream.client.reporting import HttpMetricsSink, MetricsReporter, MetricsSink
from chatstream.client.session import StreamingChatSession
from chatstream.client.tracker import RequestMetricsTracker, estimate_input_tokens

__all__ = [
    "ClientConfig",
    "HttpMetricsSink",
    "MetricsReporter",
    "MetricsSink",
    "RequestMetricsTracker",
    "StreamDecoder",
    "StreamMode",
    "StreamingChatSession",
    "estimate_input_tokens",
    "get_client_config",
]
