"""Platform probes producing hardware metrics snapshots.

Each probe shells out to OS tools. Any failure to run or parse a tool is
raised as ``ProbeError`` (or a parsing exception) and turned into a zeroed
snapshot by the collector.
"""

import asyncio
import logging
import os
import re
import sys
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from chatstream.hardware.config import HardwareConfig
from chatstream.models.schemas import HardwareMetricsSnapshot

logger = logging.getLogger(__name__)

GPU_RESIDENCY_PATTERN = re.compile(r"GPU (?:HW )?active residency:\s+([0-9.]+)%")
PROCESS_STATS_PATTERN = re.compile(r"^\s*\d+\s+([0-9.]+)\s+([0-9.]+)\s+(.*)$")
TOKENS_PER_SEC_PATTERN = re.compile(r"([0-9.]+) tokens/sec")
MODEL_PROCESS_MARKER = "llama.cpp"


class ProbeError(Exception):
    """Raised when a probe command cannot be run."""

    pass


class Platform(str, Enum):
    APPLE = "apple"
    WINDOWS = "windows"
    LINUX = "linux"
    OTHER = "other"


class CommandResult(NamedTuple):
    returncode: int
    stdout: str


CommandRunner = Callable[[list[str], float], Awaitable[CommandResult]]
Probe = Callable[[HardwareConfig, CommandRunner], Awaitable[HardwareMetricsSnapshot]]


async def run_command(args: list[str], timeout: float) -> CommandResult:
    """Run a command and capture its stdout.

    Raises:
        ProbeError: If the executable is missing, not permitted or times out.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            stdin=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        raise ProbeError(f"Cannot run {args[0]}: {e}") from e

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise ProbeError(f"{args[0]} timed out after {timeout}s") from e

    return CommandResult(proc.returncode, stdout.decode("utf-8", errors="replace"))


def detect_platform(name: str | None = None) -> Platform:
    """Map a ``sys.platform`` style identifier to a Platform."""
    name = name or sys.platform
    if name == "darwin":
        return Platform.APPLE
    if name in ("win32", "cygwin"):
        return Platform.WINDOWS
    if name.startswith("linux"):
        return Platform.LINUX
    return Platform.OTHER


def derive_latency(tokens_per_second: float) -> float:
    """Per-token latency in milliseconds, 0 when nothing is generated."""
    return 1000 / tokens_per_second if tokens_per_second > 0 else 0.0


def zeroed_snapshot() -> HardwareMetricsSnapshot:
    return HardwareMetricsSnapshot()


def parse_established(output: str, port: int) -> bool:
    """Whether netstat/lsof output lists an established connection on ``port``."""
    suffixes = (f":{port}", f".{port}")
    for line in output.splitlines():
        if "ESTABLISHED" not in line:
            continue
        if any(
            token.endswith(suffixes) or f"{suffix}->" in token
            for token in line.split()
            for suffix in suffixes
        ):
            return True
    return False


def read_tail(path: Path, lines: int, block_size: int = 8192) -> str:
    """Last ``lines`` lines of a file, read backwards from its end.

    Only the trailing blocks are read, so the cost does not grow with the
    size of an ever-growing log.
    """
    with path.open("rb") as f:
        pos = f.seek(0, os.SEEK_END)
        data = b""
        # One newline more than requested so a partial leading line is dropped
        while pos > 0 and data.count(b"\n") <= lines:
            step = min(block_size, pos)
            pos -= step
            f.seek(pos)
            data = f.read(step) + data
    tail = data.splitlines()[-lines:]
    return b"\n".join(tail).decode("utf-8", errors="replace")


def read_tokens_per_second(log_path: str, tail_lines: int) -> float:
    """Latest ``<n> tokens/sec`` figure from the end of the model runner log."""
    path = Path(log_path)
    if not path.is_file():
        return 0.0
    matches = TOKENS_PER_SEC_PATTERN.findall(read_tail(path, tail_lines))
    return float(matches[-1]) if matches else 0.0


async def inference_active(platform: Platform, config: HardwareConfig, runner: CommandRunner) -> bool:
    port = config.model_server_port
    if platform is Platform.APPLE:
        # lsof exits 1 with no output when nothing matches
        result = await runner(["lsof", "-nP", f"-iTCP:{port}", "-sTCP:ESTABLISHED"], config.command_timeout)
    else:
        result = await runner(["netstat", "-an"], config.command_timeout)
    return parse_established(result.stdout, port)


async def apple_probe(config: HardwareConfig, runner: CommandRunner) -> HardwareMetricsSnapshot:
    """Metal GPU residency via powermetrics plus model-runner process stats."""
    powermetrics = ["powermetrics", "--samplers", "gpu_power", "-n", "1", "-i", "500", "-o", "stdout"]
    if config.use_sudo:
        powermetrics = ["sudo", "-n", *powermetrics]
    result = await runner(powermetrics, config.command_timeout)
    if result.returncode != 0:
        raise ProbeError(f"powermetrics exited with {result.returncode}")
    match = GPU_RESIDENCY_PATTERN.search(result.stdout)
    gpu_utilization = float(match.group(1)) if match else 0.0

    # Process memory stands in for GPU memory on unified-memory hosts
    memory_usage = cpu_usage = 0.0
    ps = await runner(["ps", "-eo", "pid,pmem,pcpu,command"], config.command_timeout)
    for line in ps.stdout.splitlines()[1:]:
        stats = PROCESS_STATS_PATTERN.match(line)
        if stats and MODEL_PROCESS_MARKER in stats.group(3):
            memory_usage = float(stats.group(1))
            cpu_usage = float(stats.group(2))
            break

    active = await inference_active(Platform.APPLE, config, runner)
    tokens_per_second = 0.0
    if active:
        try:
            tokens_per_second = await asyncio.to_thread(
                read_tokens_per_second, config.llama_log_path, config.log_tail_lines
            )
        except OSError as e:
            logger.debug(f"Could not read model runner log: {e}")

    return HardwareMetricsSnapshot(
        gpu_utilization=gpu_utilization,
        gpu_memory_usage=memory_usage,
        cpu_usage=cpu_usage,
        tokens_per_second=tokens_per_second,
        inference_active=active,
        latency=derive_latency(tokens_per_second),
        temperature=0.0,
    )


async def nvidia_probe(config: HardwareConfig, runner: CommandRunner) -> HardwareMetricsSnapshot:
    """GPU utilization, memory and temperature via nvidia-smi."""
    result = await runner(
        [
            "nvidia-smi",
            "--query-gpu=utilization.gpu,memory.used,memory.total,temperature.gpu",
            "--format=csv,noheader,nounits",
        ],
        config.command_timeout,
    )
    if result.returncode != 0:
        raise ProbeError(f"nvidia-smi exited with {result.returncode}")
    first_gpu = result.stdout.strip().splitlines()[0]
    gpu_util, memory_used, memory_total, temperature = (float(v.strip()) for v in first_gpu.split(","))
    memory_usage = memory_used / memory_total * 100 if memory_total > 0 else 0.0

    active = await inference_active(Platform.OTHER, config, runner)
    # Rough approximation; accurate figures need model-specific benchmarks
    tokens_per_second = gpu_util / 10 if active else 0.0

    return HardwareMetricsSnapshot(
        gpu_utilization=gpu_util,
        gpu_memory_usage=memory_usage,
        tokens_per_second=tokens_per_second,
        inference_active=active,
        latency=derive_latency(tokens_per_second),
        temperature=temperature,
    )


async def fallback_probe(config: HardwareConfig, runner: CommandRunner) -> HardwareMetricsSnapshot:
    return zeroed_snapshot()


def select_probe(platform: Platform, nvidia_available: bool) -> Probe:
    """Pick the probe for a host.

    Apple hosts use powermetrics, any host with nvidia-smi uses it, and
    everything else reports a zeroed snapshot.
    """
    if platform is Platform.APPLE:
        return apple_probe
    if nvidia_available:
        return nvidia_probe
    return fallback_probe
