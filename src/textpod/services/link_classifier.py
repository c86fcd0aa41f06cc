"""Decide whether a marker link is a video or a plain webpage."""

import logging
from typing import Optional

from textpod.config import config
from textpod.exceptions import ToolError
from textpod.models.schema import LinkKind
from textpod.services.tool_runner import ToolRunner

logger = logging.getLogger(__name__)


class LinkClassifier:
    """Classify URLs by asking the media downloader whether it recognizes them.

    The downloader is run in simulate mode with its catch-all "generic"
    extractor disabled, so only sites it has a dedicated extractor for
    succeed. Anything else, including a missing downloader, is a webpage.
    """

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        media_downloader: Optional[str] = None,
    ):
        self.runner = runner or ToolRunner(timeout=config.fetch_timeout)
        self.media_downloader = media_downloader or config.media_downloader

    def probe_command(self, url: str) -> list:
        return [
            self.media_downloader,
            "--simulate",
            "--quiet",
            "--ies",
            "default,-generic",
            url,
        ]

    def classify(self, url: str) -> LinkKind:
        """Return VIDEO if the downloader can extract ``url``, else WEBPAGE."""
        try:
            self.runner.run(self.probe_command(url))
        except ToolError as e:
            logger.debug(f"Treating {url} as a webpage: {e}")
            return LinkKind.WEBPAGE
        logger.debug(f"Treating {url} as a video")
        return LinkKind.VIDEO
