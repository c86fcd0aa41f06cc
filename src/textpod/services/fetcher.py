"""Fetch local copies of marker links with external downloaders.

Webpages are saved as a single self-contained HTML file by the webpage
archiver; videos are downloaded by the media downloader. Each fetch is a
single attempt: no retries, no queueing.
"""

import logging
from pathlib import Path
from typing import List, Optional

from textpod.config import config
from textpod.exceptions import FetchError, ToolError
from textpod.models.schema import LinkKind
from textpod.services.tool_runner import ToolRunner
from textpod.utils import url_to_safe_filename

logger = logging.getLogger(__name__)

WEBPAGES_SUBDIR = "webpages"
VIDEOS_SUBDIR = "videos"

# Filled in by the media downloader, so the final name is only known afterwards
VIDEO_OUTPUT_TEMPLATE = "%(id)s.%(ext)s"


class Fetcher:
    """Download a URL under an attachments directory.

    The root is passed per fetch; it comes from the link delegate, which
    owns the attachments tree.
    """

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        webpage_archiver: Optional[str] = None,
        media_downloader: Optional[str] = None,
    ):
        """Initialize the fetcher.

        Args:
            runner: Subprocess runner; a default one honours config.fetch_timeout
            webpage_archiver: Archiver program, defaults to config.webpage_archiver
            media_downloader: Downloader program, defaults to config.media_downloader
        """
        self.runner = runner or ToolRunner(timeout=config.fetch_timeout)
        self.webpage_archiver = webpage_archiver or config.webpage_archiver
        self.media_downloader = media_downloader or config.media_downloader

    def fetch(self, url: str, kind: LinkKind, attachments_dir: Path) -> Path:
        """Fetch ``url`` with the strategy for ``kind``.

        Args:
            url: The external link
            kind: Decides between the webpage archiver and the media downloader
            attachments_dir: Root under which webpages/ and videos/ are created

        Returns:
            Path of the downloaded file

        Raises:
            FetchError: If the directory cannot be created or the tool fails
        """
        if kind == LinkKind.VIDEO:
            return self.fetch_video(url, attachments_dir)
        return self.fetch_webpage(url, attachments_dir)

    def _ensure_dir(self, attachments_dir: Path, name: str, url: str) -> Path:
        directory = attachments_dir / name
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FetchError(
                f"Could not create {name} directory", url=url, original_error=e
            ) from e
        return directory

    def webpage_command(self, url: str, output: Path) -> List[str]:
        return [self.webpage_archiver, url, "-o", str(output)]

    def fetch_webpage(self, url: str, attachments_dir: Path) -> Path:
        """Archive a webpage to ``webpages/<safe-name>.html``."""
        logger.info(f"Downloading webpage {url}")
        output = self._ensure_dir(attachments_dir, WEBPAGES_SUBDIR, url) / (
            f"{url_to_safe_filename(url)}.html"
        )

        try:
            self.runner.run(self.webpage_command(url, output))
        except ToolError as e:
            raise FetchError(
                f"Failed to download webpage {url}", url=url, original_error=e
            ) from e

        logger.info(f"Downloaded webpage {url} to {output}")
        return output

    def video_command(self, url: str, videos_dir: Path) -> List[str]:
        return [
            self.media_downloader,
            "--no-simulate",
            "--quiet",
            "--restrict-filenames",
            "--print",
            "after_move:filepath",
            "-o",
            str(videos_dir / VIDEO_OUTPUT_TEMPLATE),
            url,
        ]

    def fetch_video(self, url: str, attachments_dir: Path) -> Path:
        """Download a video into ``videos/`` and return the path it chose."""
        logger.info(f"Downloading video {url}")
        videos_dir = self._ensure_dir(attachments_dir, VIDEOS_SUBDIR, url)

        try:
            result = self.runner.run(self.video_command(url, videos_dir))
        except ToolError as e:
            raise FetchError(
                f"Failed to download video {url}", url=url, original_error=e
            ) from e

        # The downloader prints the final path once the file is in place
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise FetchError(
                f"{self.media_downloader} reported no file for {url}", url=url
            )

        output = Path(lines[-1])
        if not output.is_absolute():
            output = videos_dir / output.name
        logger.info(f"Downloaded video {url} to {output}")
        return output
