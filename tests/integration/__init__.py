"""Integration tests for chat exchanges and the metrics API.

Chat servers are stood in for by httpx.MockTransport; the FastAPI app is
driven through httpx.ASGITransport.
"""
