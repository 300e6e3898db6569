"""NiceGUI web interface.

Renders a streaming chat session and a live hardware metrics panel.
Each browser client gets its own session and poller, both stopped when
the client disconnects.
"""

import os

# The chat server defaults to 8080 (see ClientConfig.api_base_url)
DEFAULT_UI_PORT = 8090


def get_ui_port() -> int:
    """Port of the standalone NiceGUI server, from ``UI_PORT``."""
    return int(os.getenv("UI_PORT", str(DEFAULT_UI_PORT)))
