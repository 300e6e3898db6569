"""Platform-dispatched hardware metrics collection.

The collector never raises: a missing tool, a permission problem or
unparseable output all degrade to a zeroed snapshot.
"""

import logging
import shutil

from chatstream.hardware.config import HardwareConfig, get_hardware_config
from chatstream.hardware.probes import (
    CommandRunner,
    Platform,
    detect_platform,
    run_command,
    select_probe,
    zeroed_snapshot,
)
from chatstream.models.schemas import HardwareMetricsSnapshot

logger = logging.getLogger(__name__)


class HardwareMetricsCollector:
    """Collects a normalized metrics snapshot for the host platform.

    Args:
        config: Hardware configuration; loaded from environment if omitted.
        platform: Host platform; detected from ``sys.platform`` if omitted.
        nvidia_available: Whether nvidia-smi is installed; looked up on PATH
            if omitted.
        runner: Command runner used by the probes.
    """

    def __init__(
        self,
        config: HardwareConfig | None = None,
        platform: Platform | None = None,
        nvidia_available: bool | None = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self._config = config or get_hardware_config()
        self.platform = platform or detect_platform()
        if nvidia_available is None:
            nvidia_available = shutil.which("nvidia-smi") is not None
        self._probe = select_probe(self.platform, nvidia_available)
        self._runner = runner
        logger.info(f"Hardware metrics probe: {self._probe.__name__} ({self.platform.value})")

    async def collect(self) -> HardwareMetricsSnapshot:
        try:
            return await self._probe(self._config, self._runner)
        except Exception as e:
            logger.warning(f"Hardware probe {self._probe.__name__} failed: {e}")
            return zeroed_snapshot()
