"""Tests for the subprocess wrapper, link classifier and fetcher."""

import stat
import subprocess
import sys
from unittest.mock import patch

import pytest

from tests.fakes import FakeRunner, completed
from textpod.exceptions import ErrorCode, FetchError, ToolError
from textpod.models.schema import LinkKind
from textpod.services.fetcher import Fetcher
from textpod.services.link_classifier import LinkClassifier
from textpod.services.tool_runner import ToolRunner

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses sh scripts")


@pytest.fixture
def fake_tool(tmp_path):
    """Write an executable sh script standing in for an external program."""

    def make(name, body):
        script = tmp_path / name
        script.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        return str(script)

    return make


class TestToolRunner:
    """Tests for ToolRunner."""

    def test_runs_real_process(self):
        """Output of a real child process is captured as text."""
        result = ToolRunner(timeout=30).run([sys.executable, "-c", "print('hi')"])
        assert result.returncode == 0
        assert result.stdout.strip() == "hi"

    def test_nonzero_exit_raises(self):
        """A failing program raises ToolError with its exit status."""
        with patch("textpod.services.tool_runner.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                ["monolith"], 2, stdout="", stderr="boom\n"
            )
            with pytest.raises(ToolError) as exc_info:
                ToolRunner().run(["monolith", "https://a.b"])

        assert exc_info.value.returncode == 2
        assert exc_info.value.stderr == "boom"
        assert exc_info.value.code == ErrorCode.TOOL_FAILED

    def test_missing_program(self):
        """A program that is not installed raises TOOL_NOT_FOUND."""
        with pytest.raises(ToolError) as exc_info:
            ToolRunner().run(["textpod-definitely-not-a-real-program"])
        assert exc_info.value.code == ErrorCode.TOOL_NOT_FOUND

    def test_timeout(self):
        """A program that runs too long raises TOOL_TIMEOUT."""
        with patch("textpod.services.tool_runner.subprocess.run") as mock_run:
            mock_run.side_effect = subprocess.TimeoutExpired(["yt-dlp"], 1.0)
            with pytest.raises(ToolError) as exc_info:
                ToolRunner(timeout=1.0).run(["yt-dlp", "x"])
        assert exc_info.value.code == ErrorCode.TOOL_TIMEOUT

    def test_timeout_passed_through(self):
        """The configured timeout reaches subprocess.run."""
        with patch("textpod.services.tool_runner.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(["x"], 0, stdout="", stderr="")
            ToolRunner(timeout=12.5).run(["x"])
        assert mock_run.call_args.kwargs["timeout"] == 12.5
        assert mock_run.call_args.kwargs["capture_output"] is True
        assert mock_run.call_args.kwargs["errors"] == "replace"

    @posix_only
    def test_undecodable_output_is_replaced(self, fake_tool):
        """Bytes that are not UTF-8 never break a finished run."""
        noisy = fake_tool("noisy", "printf 'ok\\377\\n'\nprintf '\\376' >&2")
        result = ToolRunner(timeout=30).run([noisy])
        assert result.returncode == 0
        assert result.stdout == "ok\ufffd\n"
        assert result.stderr == "\ufffd"


class TestLinkClassifier:
    """Tests for LinkClassifier."""

    def test_probe_success_is_video(self):
        """A URL the downloader can extract is a video."""
        runner = FakeRunner()
        classifier = LinkClassifier(runner=runner, media_downloader="yt-dlp")

        assert classifier.classify("https://videos.example/watch?v=1") == LinkKind.VIDEO
        assert runner.commands == [
            [
                "yt-dlp",
                "--simulate",
                "--quiet",
                "--ies",
                "default,-generic",
                "https://videos.example/watch?v=1",
            ]
        ]

    def test_probe_failure_is_webpage(self):
        """A non-zero probe falls back to a webpage."""

        def fail(command):
            raise ToolError("yt-dlp exited with status 1", command=command, returncode=1)

        classifier = LinkClassifier(runner=FakeRunner(fail))
        assert classifier.classify("https://blog.example/post") == LinkKind.WEBPAGE

    def test_missing_downloader_is_webpage(self):
        """A downloader that is not installed also means webpage."""
        classifier = LinkClassifier(
            runner=ToolRunner(), media_downloader="textpod-no-such-downloader"
        )
        assert classifier.classify("https://blog.example/post") == LinkKind.WEBPAGE

    @posix_only
    def test_undecodable_probe_output_is_webpage(self, fake_tool):
        """A failing probe with binary stderr still falls back to a webpage."""
        downloader = fake_tool("yt-dlp", "printf '\\377\\376' >&2\nexit 1")
        classifier = LinkClassifier(
            runner=ToolRunner(timeout=30), media_downloader=downloader
        )
        assert classifier.classify("https://blog.example/post") == LinkKind.WEBPAGE


class TestFetcher:
    """Tests for Fetcher."""

    def test_webpage_fetch(self, attachments_dir):
        """Webpages are archived under webpages/ with a sanitized name."""
        runner = FakeRunner()
        fetcher = Fetcher(runner=runner, webpage_archiver="monolith")

        path = fetcher.fetch("http://example.com/page", LinkKind.WEBPAGE, attachments_dir)

        expected = attachments_dir / "webpages" / "example.com_page.html"
        assert path == expected
        assert expected.parent.is_dir()
        assert runner.commands == [
            ["monolith", "http://example.com/page", "-o", str(expected)]
        ]

    def test_webpage_failure(self, attachments_dir):
        """A failing archiver raises FetchError."""

        def fail(command):
            raise ToolError("monolith exited with status 1", command=command, returncode=1)

        fetcher = Fetcher(runner=FakeRunner(fail))
        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch("https://a.b/c", LinkKind.WEBPAGE, attachments_dir)
        assert exc_info.value.url == "https://a.b/c"
        assert isinstance(exc_info.value.original_error, ToolError)

    def test_video_fetch_uses_reported_path(self, attachments_dir):
        """The downloader's printed path is the result."""
        final = attachments_dir / "videos" / "abc123.mp4"
        runner = FakeRunner(lambda command: completed(command, stdout=f"{final}\n"))
        fetcher = Fetcher(runner=runner, media_downloader="yt-dlp")

        path = fetcher.fetch("https://videos.example/watch?v=abc123", LinkKind.VIDEO, attachments_dir)

        assert path == final
        command = runner.commands[0]
        assert command[0] == "yt-dlp"
        assert "--restrict-filenames" in command
        assert command[command.index("-o") + 1] == str(
            attachments_dir / "videos" / "%(id)s.%(ext)s"
        )
        assert command[command.index("--print") + 1] == "after_move:filepath"
        assert command[-1] == "https://videos.example/watch?v=abc123"

    def test_video_fetch_takes_last_line(self, attachments_dir):
        """Only the last non-empty line of output is the path."""
        final = attachments_dir / "videos" / "x.webm"
        runner = FakeRunner(
            lambda command: completed(command, stdout=f"warning: something\n{final}\n\n")
        )
        fetcher = Fetcher(runner=runner)
        assert fetcher.fetch("https://v.example/x", LinkKind.VIDEO, attachments_dir) == final

    def test_video_fetch_without_output_fails(self, attachments_dir):
        """No reported path means the fetch failed."""
        fetcher = Fetcher(runner=FakeRunner())
        with pytest.raises(FetchError):
            fetcher.fetch("https://v.example/x", LinkKind.VIDEO, attachments_dir)

    def test_directory_creation_failure(self, attachments_dir):
        """A blocked subdirectory fails only that fetch."""
        (attachments_dir / "webpages").write_text("in the way")
        runner = FakeRunner()
        fetcher = Fetcher(runner=runner)

        with pytest.raises(FetchError):
            fetcher.fetch("https://a.b/c", LinkKind.WEBPAGE, attachments_dir)
        assert runner.commands == []

    @posix_only
    def test_webpage_with_undecodable_output(self, attachments_dir, fake_tool):
        """An archiver that succeeds but prints binary noise still resolves."""
        archiver = fake_tool("monolith", "echo archived > \"$3\"\nprintf '\\377'\nexit 0")
        fetcher = Fetcher(runner=ToolRunner(timeout=30), webpage_archiver=archiver)

        path = fetcher.fetch("https://a.b/c", LinkKind.WEBPAGE, attachments_dir)

        assert path == attachments_dir / "webpages" / "a.b_c.html"
        assert path.read_text(encoding="utf-8") == "archived\n"
