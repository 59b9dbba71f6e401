"""External tool discovery and availability checks.

Used by application startup to resolve the encoder and downloader
locations, and by the health endpoint to report their versions.
"""

import asyncio
import os
import re
import shutil
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


@dataclass
class CheckResult:
    """Result of a component availability check.

    Attributes:
        name: Component name (e.g., "ytdlp", "ffmpeg")
        available: Whether the component is available and functional
        version: Version string if available
        error: Error message if check failed
        details: Additional details about the check result
    """

    name: str
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def locate_tool(name: str, configured: Optional[str] = None) -> Optional[str]:
    """Resolve an executable path.

    Args:
        name: Executable name to look up on PATH (e.g. "ffmpeg").
        configured: Explicitly configured path, used when it exists.

    Returns:
        Absolute path to the executable, or None if not found.
    """
    if configured:
        if os.path.isfile(configured) and os.access(configured, os.X_OK):
            return os.path.abspath(configured)
        return shutil.which(configured)
    return shutil.which(name)


async def _run_binary_check(
    name: str,
    command: List[str],
    timeout: float,
    parse_output: Callable[[bytes], Tuple[bool, Optional[str], Optional[str]]],
) -> CheckResult:
    """Run a binary availability check with common error handling.

    Args:
        name: Component name for the result (e.g., "ytdlp", "ffmpeg").
        command: Command and arguments to execute.
        timeout: Maximum time to wait in seconds.
        parse_output: Callback to parse stdout and determine success.
            Should return (success, version, error_message).

    Returns:
        CheckResult with availability status.
    """
    proc = None
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)

        if proc.returncode == 0:
            success, version, error = parse_output(stdout)
            if success:
                return CheckResult(name=name, available=True, version=version)
            return CheckResult(name=name, available=False, version=version, error=error)

        return CheckResult(
            name=name,
            available=False,
            error=f"{command[0]} returned non-zero exit code",
        )
    except asyncio.TimeoutError:
        if proc:
            proc.kill()
            await proc.wait()
        return CheckResult(
            name=name,
            available=False,
            error=f"{command[0]} check timed out",
        )
    except (FileNotFoundError, PermissionError):
        return CheckResult(
            name=name,
            available=False,
            error=f"{command[0]} not found",
        )


async def check_ytdlp(path: Optional[str] = None, timeout: float = 5.0) -> CheckResult:
    """Check yt-dlp availability and version.

    Args:
        path: Executable path (defaults to "yt-dlp" on PATH).
        timeout: Maximum time to wait for the check in seconds.

    Returns:
        CheckResult with availability status and version if available.
    """

    def parse_version(stdout: bytes) -> Tuple[bool, Optional[str], Optional[str]]:
        version = stdout.decode().strip()
        return True, version, None

    return await _run_binary_check(
        name="ytdlp",
        command=[path or "yt-dlp", "--version"],
        timeout=timeout,
        parse_output=parse_version,
    )


async def check_ffmpeg(path: Optional[str] = None, timeout: float = 5.0) -> CheckResult:
    """Check ffmpeg availability and version.

    Args:
        path: Executable path (defaults to "ffmpeg" on PATH).
        timeout: Maximum time to wait for the check in seconds.

    Returns:
        CheckResult with availability status and version if available.
    """

    def parse_version(stdout: bytes) -> Tuple[bool, Optional[str], Optional[str]]:
        output = stdout.decode()
        match = re.search(r"ffmpeg version (\S+)", output)
        version = match.group(1) if match else "unknown"
        return True, version, None

    return await _run_binary_check(
        name="ffmpeg",
        command=[path or "ffmpeg", "-version"],
        timeout=timeout,
        parse_output=parse_version,
    )
