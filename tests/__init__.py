"""Test package for chatstream.

Structure:
    - unit/: Decoder, tracker, reporting, probes, cache and config tests
    - integration/: Chat sessions against mock transports and the HTTP API

Uses pytest with pytest-asyncio (auto mode) and pytest-check for soft assertions.
"""
