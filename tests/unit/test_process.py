"""Tests for external process execution."""

import asyncio
import sys
from typing import List

import pytest

from clipper.core.process import AsyncioProcessRunner, ProcessResult
from clipper.providers.exceptions import ProcessFailedError, ProcessLaunchError


def _python(code: str) -> List[str]:
    return [sys.executable, "-c", code]


class TestAsyncioProcessRunner:
    """Tests for AsyncioProcessRunner."""

    @pytest.mark.asyncio
    async def test_captures_stdout_and_exit_code(self) -> None:
        runner = AsyncioProcessRunner()

        result = await runner.run(_python("print('one'); print('two')"))

        assert result.ok
        assert result.stdout == "one\ntwo\n"

    @pytest.mark.asyncio
    async def test_streams_lines_to_handler(self) -> None:
        runner = AsyncioProcessRunner()
        lines: List[str] = []

        result = await runner.run(
            _python("import sys\nfor i in range(3):\n    print(f'out_time_ms={i}', flush=True)"),
            on_stdout_line=lines.append,
        )

        assert lines == ["out_time_ms=0", "out_time_ms=1", "out_time_ms=2"]
        assert result.stdout == ""

    @pytest.mark.asyncio
    async def test_captures_line_longer_than_stream_limit(self) -> None:
        runner = AsyncioProcessRunner()

        result = await runner.run(_python("print('x' * 300000)"))

        assert result.ok
        assert result.stdout.rstrip("\n") == "x" * 300000

    @pytest.mark.asyncio
    async def test_streams_line_longer_than_stream_limit(self) -> None:
        runner = AsyncioProcessRunner()
        lines: List[str] = []

        await runner.run(
            _python("print('x' * 300000); print('done', end='')"),
            on_stdout_line=lines.append,
        )

        assert [len(line) for line in lines] == [300000, 4]
        assert lines[-1] == "done"

    @pytest.mark.asyncio
    async def test_keeps_stderr_on_failure(self) -> None:
        runner = AsyncioProcessRunner()

        result = await runner.run(
            _python("import sys; sys.stderr.write('Invalid data found'); sys.exit(3)")
        )

        assert result.returncode == 3
        with pytest.raises(ProcessFailedError) as exc_info:
            result.check("ffmpeg")

        assert exc_info.value.returncode == 3
        assert exc_info.value.stderr == "Invalid data found"
        assert "Invalid data found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_executable_raises_launch_error(self) -> None:
        runner = AsyncioProcessRunner()

        with pytest.raises(ProcessLaunchError):
            await runner.run(["/nonexistent/ffmpeg", "-version"])

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self) -> None:
        runner = AsyncioProcessRunner()

        with pytest.raises(asyncio.TimeoutError):
            await runner.run(_python("import time; time.sleep(30)"), timeout=0.5)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        runner = AsyncioProcessRunner()
        task = asyncio.create_task(runner.run(_python("import time; time.sleep(30)")))

        await asyncio.sleep(0.2)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


def test_check_returns_result_on_success() -> None:
    result = ProcessResult(command=["ffmpeg"], returncode=0)

    assert result.check("ffmpeg") is result
