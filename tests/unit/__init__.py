"""Unit tests for individual components in isolation.

External processes and sinks are replaced by fakes; no network access.
"""
