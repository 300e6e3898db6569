"""Chatstream - streaming chat client for a locally hosted model server.

Consumes chunked and server-sent-event chat responses, correlates each
exchange with latency metrics, and exposes host hardware metrics for a
polling dashboard.

Components:
    - client: stream decoding, request metrics and chat sessions
    - hardware: platform probes with a short-lived metrics cache
    - api: HTTP endpoint for hardware metrics
    - ui: Web interface wiring sessions and the metrics poller
    - models: Domain models and wire schemas
"""

__version__ = "0.1.0"
