"""Configuration module for the textpod server."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from textpod import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the default log directory
_USER_ENV = Path.home() / ".textpod" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class TextpodConfig(BaseModel):
    """Configuration for the textpod server."""

    # Base directory; relative paths below are resolved against it
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("TEXTPOD_BASE_DIR", "."))
    )
    # Flat file holding every note
    notes_file: Path = Field(
        default_factory=lambda: Path(os.getenv("TEXTPOD_NOTES_FILE", "notes.md"))
    )
    # Uploaded files and fetched local copies
    attachments_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("TEXTPOD_ATTACHMENTS_DIR", "attachments")
        )
    )
    # Mount point under which attachments are served
    public_attachments_path: str = Field(default="/attachments")
    # Server configuration
    host: str = Field(default_factory=lambda: os.getenv("TEXTPOD_HOST", "127.0.0.1"))
    port: int = Field(default_factory=lambda: int(os.getenv("TEXTPOD_PORT", "3000")))
    server_name: str = Field(default=os.getenv("TEXTPOD_SERVER_NAME", "textpod"))
    server_version: str = Field(default=__version__)
    # External programs used for link resolution
    webpage_archiver: str = Field(
        default_factory=lambda: os.getenv("TEXTPOD_WEBPAGE_ARCHIVER", "monolith")
    )
    media_downloader: str = Field(
        default_factory=lambda: os.getenv("TEXTPOD_MEDIA_DOWNLOADER", "yt-dlp")
    )
    # When False, marker links are left alone
    link_resolution_enabled: bool = Field(
        default_factory=lambda: _env_flag("TEXTPOD_LINK_RESOLUTION", "true")
    )
    # Seconds before an external tool is killed; None waits forever
    fetch_timeout: Optional[float] = Field(
        default_factory=lambda: (
            float(os.getenv("TEXTPOD_FETCH_TIMEOUT"))
            if os.getenv("TEXTPOD_FETCH_TIMEOUT")
            else None
        )
    )
    # Seconds to wait for the note store lock before giving up
    lock_timeout: float = Field(
        default_factory=lambda: float(os.getenv("TEXTPOD_LOCK_TIMEOUT", "30"))
    )
    max_content_length: int = Field(default=1_000_000)  # 1 MB
    max_upload_bytes: int = Field(default=500 * 1024 * 1024)
    # Persistent log files
    log_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("TEXTPOD_LOG_DIR", str(Path.home() / ".textpod" / "logs"))
        )
    )

    @model_validator(mode="after")
    def _validate_limits(self) -> "TextpodConfig":
        """Reject settings that can never work."""
        if not 0 < self.port < 65536:
            raise ValueError("port must be between 1 and 65535")
        if self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be > 0")
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be > 0 when set")
        if not self.public_attachments_path.startswith("/"):
            raise ValueError("public_attachments_path must start with '/'")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_notes_path(self) -> Path:
        """Get the absolute path of the notes file."""
        return self.get_absolute_path(self.notes_file)

    def get_attachments_dir(self) -> Path:
        """Get the absolute attachments directory, creating it if needed."""
        attachments = self.get_absolute_path(self.attachments_dir)
        attachments.mkdir(parents=True, exist_ok=True)
        return attachments


# Create a global config instance
config = TextpodConfig()
