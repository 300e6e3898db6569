"""Main application entry point.

Serves the hardware metrics API (port 8000) with the NiceGUI chat page
mounted on it, or runs the two as separate processes (UI on UI_PORT).
Environment variables are loaded from .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def run_integrated() -> None:
    """Run FastAPI with NiceGUI mounted on the same server."""
    import uvicorn
    from nicegui import ui

    from chatstream.api.app import create_app
    from chatstream.ui.chat_page import chat_page  # noqa: F401 - Registers the page

    app = create_app()

    ui.run_with(
        app,
        title="Local Model Chat",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "chatstream-secret"),
    )

    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Starting integrated server on http://localhost:{port}")
    logger.info(f"Hardware metrics at http://localhost:{port}/api/gpu-metrics")

    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def run_separate() -> None:
    """Run the metrics API and the NiceGUI chat page as separate servers."""
    import asyncio
    import subprocess

    from chatstream.client.config import get_client_config
    from chatstream.ui import get_ui_port

    async def run_servers() -> None:
        api_port = os.getenv("PORT", "8000")
        logger.info(f"Starting FastAPI on http://localhost:{api_port}")
        logger.info(f"Hardware metrics at http://localhost:{api_port}/api/gpu-metrics")
        logger.info(f"Starting NiceGUI on http://localhost:{get_ui_port()}")
        logger.info(f"Chat requests go to {get_client_config().api_base_url}")

        api_proc = subprocess.Popen(
            [
                sys.executable,
                "-m",
                "uvicorn",
                "chatstream.api.app:app",
                "--host",
                os.getenv("HOST", "0.0.0.0"),
                "--port",
                api_port,
            ]
        )
        ui_proc = subprocess.Popen(
            [sys.executable, "-c", "from chatstream.ui.chat_page import main; main()"]
        )

        try:
            while True:
                await asyncio.sleep(1)
                if api_proc.poll() is not None or ui_proc.poll() is not None:
                    break
        except KeyboardInterrupt:
            logger.info("Shutting down servers...")
        finally:
            api_proc.terminate()
            ui_proc.terminate()
            api_proc.wait()
            ui_proc.wait()

    asyncio.run(run_servers())


def main() -> None:
    """Application entry point.

    Set RUN_MODE=separate to run the API and the UI on different ports.
    """
    mode = os.getenv("RUN_MODE", "integrated").lower()
    logger.info(f"Starting chatstream in {mode} mode")

    if mode == "separate":
        run_separate()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
