"""FastAPI endpoints for chatstream.

Endpoints:
    - GET /health: Service health status
    - GET /api/gpu-metrics: Hardware metrics snapshot for polling dashboards
"""

from chatstream.api.app import app, create_app

__all__ = ["app", "create_app"]
