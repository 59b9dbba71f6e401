"""External process execution.

All encoder and downloader invocations go through ``ProcessRunner`` so the
orchestration code can be exercised with fakes instead of real binaries.
"""

import asyncio
import contextlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import structlog

from clipper.providers.exceptions import ProcessFailedError, ProcessLaunchError

logger = structlog.get_logger(__name__)

LineHandler = Callable[[str], None]

# Diagnostics longer than this are truncated from the front
MAX_STDERR_CHARS = 8000

READ_CHUNK_SIZE = 64 * 1024


@dataclass
class ProcessResult:
    """Outcome of one external process run."""

    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self, what: str) -> "ProcessResult":
        """Raise ``ProcessFailedError`` unless the process exited cleanly.

        Args:
            what: Short description used as the error prefix (e.g. "ffmpeg mux").
        """
        if not self.ok:
            raise ProcessFailedError(
                f"{what} exited with status {self.returncode}",
                returncode=self.returncode,
                stderr=self.stderr.strip(),
            )
        return self


class ProcessRunner(ABC):
    """Narrow process execution interface: command in, exit status and output out."""

    @abstractmethod
    async def run(
        self,
        command: List[str],
        *,
        env: Optional[Dict[str, str]] = None,
        on_stdout_line: Optional[LineHandler] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """
        Run a command to completion.

        Args:
            command: Executable and arguments
            env: Optional environment for the child process
            on_stdout_line: Called with each stdout line as it arrives. When
                given, stdout is not accumulated in the result.
            timeout: Optional limit in seconds for the whole run

        Returns:
            ProcessResult with exit status and captured output

        Raises:
            ProcessLaunchError: If the executable cannot be started
            asyncio.TimeoutError: If the timeout elapses (process is killed)
            asyncio.CancelledError: If the calling task is cancelled (process is killed)
        """
        pass


class AsyncioProcessRunner(ProcessRunner):
    """Runs commands with ``asyncio.create_subprocess_exec``."""

    async def run(
        self,
        command: List[str],
        *,
        env: Optional[Dict[str, str]] = None,
        on_stdout_line: Optional[LineHandler] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        logger.debug("process_starting", command=command)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ProcessLaunchError(f"Could not start {command[0]}: {e}") from e

        stdout_chunks: List[bytes] = []

        async def read_stdout() -> None:
            assert process.stdout is not None
            if on_stdout_line is None:
                stdout_chunks.append(await process.stdout.read())
                return

            # Lines are split by hand; readline() is capped at the stream limit
            pending = b""
            while True:
                chunk = await process.stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                pending += chunk
                *lines, pending = pending.split(b"\n")
                for line in lines:
                    on_stdout_line(line.decode(errors="replace").rstrip("\r"))
            if pending:
                on_stdout_line(pending.decode(errors="replace").rstrip("\r"))

        async def read_stderr() -> bytes:
            assert process.stderr is not None
            return await process.stderr.read()

        # Both pipes are drained while waiting so a chatty child cannot block
        gathered = asyncio.gather(read_stdout(), read_stderr(), process.wait())
        try:
            if timeout:
                _, stderr, returncode = await asyncio.wait_for(gathered, timeout=timeout)
            else:
                _, stderr, returncode = await gathered
        except BaseException:
            # Cancellation, timeout, or a failing line handler
            await self._kill(process)
            gathered.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await gathered
            raise

        result = ProcessResult(
            command=command,
            returncode=returncode,
            stdout=b"".join(stdout_chunks).decode(errors="replace"),
            stderr=stderr.decode(errors="replace")[-MAX_STDERR_CHARS:],
        )

        logger.debug(
            "process_completed",
            executable=command[0],
            exit_code=returncode,
            stderr_preview=result.stderr[:500] if result.stderr else None,
        )

        return result

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        logger.info("process_killed", pid=process.pid)
