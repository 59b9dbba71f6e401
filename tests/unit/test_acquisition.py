"""Tests for the acquisition orchestrator and its strategies."""

import asyncio
import dataclasses
from pathlib import Path
from typing import List, Optional

import httpx
import pytest

from clipper.core.process import LineHandler, ProcessResult
from clipper.models.job import AcquisitionJob
from clipper.models.video import VideoInfo
from clipper.providers.exceptions import AcquisitionError, VideoUnavailableError
from clipper.services.acquisition import (
    PREVIEW_SUFFIX,
    AcquisitionOrchestrator,
    build_mux_command,
    build_ytdlp_command,
    parse_ytdlp_progress,
)
from clipper.services.fetcher import StreamFetcher
from clipper.testing import (
    FakeProvider,
    FakeRunner,
    block_forever,
    fail_with,
    make_variant,
    succeed_writing,
    write_output,
)

ENCODER = "/usr/bin/ffmpeg"
DOWNLOADER = "/usr/bin/yt-dlp"
URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def _ytdlp_output(command: List[str]) -> Path:
    return Path(command[command.index("-o") + 1])


def _ytdlp_success(lines: Optional[List[str]] = None):  # type: ignore[no-untyped-def]
    def handler(command: List[str], on_line: Optional[LineHandler]) -> ProcessResult:
        for line in lines or []:
            if on_line is not None:
                on_line(line)
        write_output(_ytdlp_output(command))
        return ProcessResult(command=command, returncode=0)

    return handler


def _media_fetcher(status: int = 200) -> StreamFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, content=b"media:" + request.url.path.encode() * 100)

    return StreamFetcher(chunk_size=256, transport=httpx.MockTransport(handler))


def _orchestrator(
    provider: FakeProvider,
    runner: FakeRunner,
    fetcher: Optional[StreamFetcher] = None,
) -> AcquisitionOrchestrator:
    return AcquisitionOrchestrator(provider=provider, fetcher=fetcher or _media_fetcher(), runner=runner)


def _job(
    destination: Path,
    seen: List[float],
    encoder: Optional[str] = ENCODER,
    downloader: Optional[str] = DOWNLOADER,
) -> AcquisitionJob:
    return AcquisitionJob(
        url=URL,
        destination_dir=destination,
        encoder_path=encoder,
        downloader_path=downloader,
        on_progress=seen.append,
    )


class TestParseYtdlpProgress:
    """Tests for parse_ytdlp_progress."""

    def test_parses_known_total(self) -> None:
        assert parse_ytdlp_progress("clipper:downloaded=50 total=200 total_est=NA") == 0.25

    def test_falls_back_to_estimate(self) -> None:
        assert parse_ytdlp_progress("clipper:downloaded=50 total=NA total_est=100") == 0.5

    def test_clamps_overshoot(self) -> None:
        assert parse_ytdlp_progress("clipper:downloaded=300 total=NA total_est=200") == 1.0

    def test_ignores_other_lines(self) -> None:
        assert parse_ytdlp_progress("[download] Destination: video.mp4") is None
        assert parse_ytdlp_progress("clipper:downloaded=NA total=NA total_est=NA") is None


class TestCommands:
    """Tests for command builders."""

    def test_ytdlp_command(self) -> None:
        cmd = build_ytdlp_command(DOWNLOADER, ENCODER, URL, Path("/tmp/x/video-preview.mp4"))

        assert cmd[0] == DOWNLOADER
        assert cmd[cmd.index("--ffmpeg-location") + 1] == "/usr/bin"
        assert cmd[cmd.index("--merge-output-format") + 1] == "mp4"
        assert "--newline" in cmd
        assert cmd[-2:] == ["--", URL]

    def test_mux_copies_compatible_streams(self) -> None:
        cmd = build_mux_command(
            ENCODER, Path("v.mp4"), Path("a.m4a"), Path("out.mp4"), False, False
        )

        assert cmd[cmd.index("-c:v") + 1] == "copy"
        assert cmd[cmd.index("-c:a") + 1] == "copy"
        assert cmd[-1] == "out.mp4"

    def test_mux_transcodes_webm_streams(self) -> None:
        cmd = build_mux_command(
            ENCODER, Path("v.webm"), Path("a.webm"), Path("out.mp4"), True, True
        )

        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        assert "+faststart" in cmd


class TestExternalToolStrategy:
    """Tests for the yt-dlp strategy."""

    @pytest.mark.asyncio
    async def test_success_reports_monotonic_progress(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(
            _ytdlp_success(
                [
                    "clipper:downloaded=50 total=100 total_est=NA",
                    "clipper:downloaded=100 total=100 total_est=NA",
                    # Second stream restarts at zero
                    "clipper:downloaded=10 total=100 total_est=NA",
                ]
            )
        )
        seen: List[float] = []

        result = await _orchestrator(fake_provider, runner).run(_job(tmp_path, seen))

        assert result.strategy == "external_tool"
        assert result.path.name == f"Never Gonna Give You Up{PREVIEW_SUFFIX}"
        assert result.path.exists()
        assert seen == [0.5, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_failure_falls_through_to_split_mux(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(fail_with("ERROR: Requested format is not available"), succeed_writing())
        seen: List[float] = []

        result = await _orchestrator(fake_provider, runner).run(_job(tmp_path, seen))

        assert result.strategy == "split_mux"
        assert "external_tool" in result.attempts
        assert sorted(p.name for p in tmp_path.iterdir()) == [result.path.name]
        assert seen == sorted(seen)
        assert seen[-1] == 1.0

    @pytest.mark.asyncio
    async def test_failure_removes_partial_files(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        def partial(command: List[str], on_line: Optional[LineHandler]) -> ProcessResult:
            output = _ytdlp_output(command)
            write_output(output.with_name(output.name + ".part"))
            write_output(output.with_name(f"{output.stem}.f137.mp4"))
            return ProcessResult(command=command, returncode=1, stderr="HTTP Error 403")

        runner = FakeRunner(partial, succeed_writing())

        result = await _orchestrator(fake_provider, runner).run(_job(tmp_path, []))

        assert [p.name for p in tmp_path.iterdir()] == [result.path.name]

    @pytest.mark.asyncio
    async def test_failure_removes_partial_files_with_bracketed_title(
        self, tmp_path: Path, video_info: VideoInfo
    ) -> None:
        provider = FakeProvider(dataclasses.replace(video_info, title="Song [Live]"))

        def partial(command: List[str], on_line: Optional[LineHandler]) -> ProcessResult:
            output = _ytdlp_output(command)
            write_output(output.with_name(f"{output.stem}.f137.mp4"))
            write_output(output.with_name(f"{output.stem}.f140.m4a"))
            return ProcessResult(command=command, returncode=1, stderr="HTTP Error 403")

        runner = FakeRunner(partial, succeed_writing())

        result = await _orchestrator(provider, runner).run(_job(tmp_path, []))

        assert result.path.name == f"Song [Live]{PREVIEW_SUFFIX}"
        assert [p.name for p in tmp_path.iterdir()] == [result.path.name]

    @pytest.mark.asyncio
    async def test_downloader_gets_canonical_url_after_separator(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(_ytdlp_success())
        job = _job(tmp_path, [])
        job.url = "https://youtu.be/dQw4w9WgXcQ?si=--exec=touch"

        await _orchestrator(fake_provider, runner).run(job)

        cmd = runner.calls[0]
        assert cmd[-2:] == ["--", "https://www.youtube.com/watch?v=dQw4w9WgXcQ"]
        assert not any(arg.startswith("--exec") for arg in cmd)

    @pytest.mark.asyncio
    async def test_unusable_without_downloader(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(succeed_writing())

        result = await _orchestrator(fake_provider, runner).run(
            _job(tmp_path, [], downloader=None)
        )

        assert result.strategy == "split_mux"
        assert result.attempts["external_tool"] == "downloader not available"
        assert runner.calls[0][0] == ENCODER


class TestSplitMuxStrategy:
    """Tests for the fetch-and-mux strategy."""

    @pytest.mark.asyncio
    async def test_fetches_tallest_video_and_copies_codecs(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(succeed_writing())

        await _orchestrator(fake_provider, runner).run(_job(tmp_path, [], downloader=None))

        mux = runner.calls[0]
        assert any(arg.endswith("-video.mp4") for arg in mux)
        assert any(arg.endswith("-audio.m4a") for arg in mux)
        assert mux[mux.index("-c:v") + 1] == "copy"

    @pytest.mark.asyncio
    async def test_progress_spans_video_audio_and_mux_phases(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(succeed_writing())
        seen: List[float] = []

        await _orchestrator(fake_provider, runner).run(_job(tmp_path, seen, downloader=None))

        assert seen == sorted(seen)
        assert 0.75 in seen
        assert 0.95 in seen
        assert seen[-1] == 1.0

    @pytest.mark.asyncio
    async def test_fetch_failure_falls_back_to_progressive(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner()
        orchestrator = _orchestrator(fake_provider, runner, fetcher=_media_fetcher(status=503))

        with pytest.raises(AcquisitionError) as exc_info:
            await orchestrator.run(_job(tmp_path, [], downloader=None))

        errors = exc_info.value.errors
        assert errors["split_mux"].startswith("failed to download video stream")
        assert "HTTP 503" in errors["progressive"]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_mux_failure_cleans_up(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(fail_with("Invalid data found when processing input"))

        result = await _orchestrator(fake_provider, runner).run(
            _job(tmp_path, [], downloader=None)
        )

        assert result.strategy == "progressive"
        assert "Invalid data found" in result.attempts["split_mux"]
        assert [p.name for p in tmp_path.iterdir()] == [result.path.name]


class TestProgressiveStrategy:
    """Tests for the single-file strategy."""

    @pytest.mark.asyncio
    async def test_picks_720p_without_encoder(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner()
        seen: List[float] = []

        result = await _orchestrator(fake_provider, runner).run(
            _job(tmp_path, seen, encoder=None, downloader=None)
        )

        assert result.strategy == "progressive"
        assert result.path == tmp_path / "Never Gonna Give You Up.mp4"
        assert b"/22" in result.path.read_bytes()
        assert runner.calls == []
        assert seen[-1] == 1.0
        assert result.attempts == {
            "external_tool": "downloader not available",
            "split_mux": "encoder not available",
        }

    @pytest.mark.asyncio
    async def test_incompatible_variant_is_transcoded(self, tmp_path: Path) -> None:
        info = VideoInfo(
            video_id="jNQXAC9IVRw",
            title="Me at the zoo",
            duration=19.0,
            variants=[
                make_variant("43", container="webm", video_codec="vp8.0", audio_codec="vorbis")
            ],
        )
        runner = FakeRunner(succeed_writing())

        result = await _orchestrator(FakeProvider(info), runner).run(
            _job(tmp_path, [], downloader=None)
        )

        assert result.path.name == f"Me at the zoo{PREVIEW_SUFFIX}"
        assert [p.name for p in tmp_path.iterdir()] == [result.path.name]

    @pytest.mark.asyncio
    async def test_failed_transcode_keeps_original(self, tmp_path: Path) -> None:
        info = VideoInfo(
            video_id="jNQXAC9IVRw",
            title="Me at the zoo",
            duration=19.0,
            variants=[
                make_variant("43", container="webm", video_codec="vp8.0", audio_codec="vorbis")
            ],
        )
        runner = FakeRunner(fail_with("Unknown encoder 'libx264'"))

        result = await _orchestrator(FakeProvider(info), runner).run(
            _job(tmp_path, [], downloader=None)
        )

        assert result.path.name == "Me at the zoo.webm"
        assert result.path.exists()

    @pytest.mark.asyncio
    async def test_no_video_variant_exhausts_strategies(self, tmp_path: Path) -> None:
        info = VideoInfo(
            video_id="dQw4w9WgXcQ",
            title="audio",
            duration=1.0,
            variants=[make_variant("140", video_codec=None)],
        )

        with pytest.raises(AcquisitionError, match="no suitable video format found"):
            await _orchestrator(FakeProvider(info), FakeRunner()).run(
                _job(tmp_path, [], encoder=None, downloader=None)
            )


class TestOrchestrator:
    """Tests for overall orchestration."""

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self, tmp_path: Path, video_info: VideoInfo) -> None:
        provider = FakeProvider(video_info, error=VideoUnavailableError("Private video"))
        runner = FakeRunner()

        with pytest.raises(VideoUnavailableError):
            await _orchestrator(provider, runner).run(_job(tmp_path, []))

        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_acquire_uses_configured_tools(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        runner = FakeRunner(_ytdlp_success())
        orchestrator = AcquisitionOrchestrator(
            provider=fake_provider,
            fetcher=_media_fetcher(),
            runner=runner,
            encoder_path=ENCODER,
            downloader_path=DOWNLOADER,
        )

        result = await orchestrator.acquire(URL, tmp_path / "session")

        assert result.strategy == "external_tool"
        assert result.path.parent == tmp_path / "session"

    @pytest.mark.asyncio
    async def test_cancellation_removes_leftovers(
        self, tmp_path: Path, fake_provider: FakeProvider
    ) -> None:
        started = asyncio.Event()
        runner = FakeRunner(block_forever(started))
        task = asyncio.create_task(_orchestrator(fake_provider, runner).run(_job(tmp_path, [])))

        await asyncio.wait_for(started.wait(), timeout=5)
        output = _ytdlp_output(runner.calls[0])
        write_output(output.with_name(output.name + ".part"))

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert list(tmp_path.iterdir()) == []
