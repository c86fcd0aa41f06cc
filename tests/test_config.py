"""Tests for configuration and the exception hierarchy."""
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from textpod.config import TextpodConfig
from textpod.exceptions import (
    ErrorCode,
    FetchError,
    InternalError,
    NoteNotFoundError,
    StorageError,
    TextpodError,
    ToolError,
    ValidationError,
)


class TestTextpodConfig:
    """Tests for TextpodConfig."""

    def test_defaults(self, monkeypatch):
        for name in (
            "TEXTPOD_NOTES_FILE",
            "TEXTPOD_ATTACHMENTS_DIR",
            "TEXTPOD_PORT",
            "TEXTPOD_LINK_RESOLUTION",
            "TEXTPOD_FETCH_TIMEOUT",
        ):
            monkeypatch.delenv(name, raising=False)
        cfg = TextpodConfig()
        assert cfg.notes_file == Path("notes.md")
        assert cfg.attachments_dir == Path("attachments")
        assert cfg.port == 3000
        assert cfg.public_attachments_path == "/attachments"
        assert cfg.link_resolution_enabled is True
        assert cfg.fetch_timeout is None

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TEXTPOD_BASE_DIR", str(tmp_path))
        monkeypatch.setenv("TEXTPOD_PORT", "8080")
        monkeypatch.setenv("TEXTPOD_LINK_RESOLUTION", "no")
        monkeypatch.setenv("TEXTPOD_FETCH_TIMEOUT", "90")
        monkeypatch.setenv("TEXTPOD_WEBPAGE_ARCHIVER", "/opt/bin/monolith")
        cfg = TextpodConfig()
        assert cfg.port == 8080
        assert cfg.link_resolution_enabled is False
        assert cfg.fetch_timeout == 90.0
        assert cfg.webpage_archiver == "/opt/bin/monolith"
        assert cfg.get_notes_path() == tmp_path / "notes.md"

    def test_absolute_paths_kept(self, tmp_path):
        cfg = TextpodConfig(base_dir=Path("/elsewhere"), notes_file=tmp_path / "n.md")
        assert cfg.get_notes_path() == tmp_path / "n.md"

    def test_attachments_dir_created(self, tmp_path):
        cfg = TextpodConfig(base_dir=tmp_path, attachments_dir=Path("files/att"))
        path = cfg.get_attachments_dir()
        assert path == tmp_path / "files" / "att"
        assert path.is_dir()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"port": 0},
            {"port": 70000},
            {"lock_timeout": 0},
            {"fetch_timeout": -1},
            {"public_attachments_path": "attachments"},
        ],
    )
    def test_invalid_settings_rejected(self, overrides):
        with pytest.raises(PydanticValidationError):
            TextpodConfig(**overrides)


class TestExceptions:
    """Tests for the structured exception hierarchy."""

    def test_base_to_dict(self):
        error = TextpodError("bad", code=ErrorCode.CONFIG_INVALID, details={"key": "port"})
        assert error.to_dict() == {
            "error": "TextpodError",
            "code": 6001,
            "code_name": "CONFIG_INVALID",
            "message": "bad",
            "details": {"key": "port"},
        }
        assert str(error) == "[CONFIG_INVALID] bad (key=port)"

    def test_str_without_details(self):
        assert str(TextpodError("plain")) == "[VALIDATION_FAILED] plain"

    def test_note_not_found(self):
        error = NoteNotFoundError(5)
        assert error.code == ErrorCode.NOTE_NOT_FOUND
        assert error.message == "Note #5 not found"
        assert error.details == {"note_id": 5}

    def test_storage_error_hides_directories(self):
        cause = OSError("No space left on device")
        error = StorageError(
            "write failed", operation="create", path="/home/me/notes.md", original_error=cause
        )
        assert error.code == ErrorCode.STORAGE_WRITE_FAILED
        assert error.details["path_hint"] == "notes.md"
        assert error.details["operation"] == "create"
        assert "No space left" in error.details["original_error"]

    def test_internal_error(self):
        error = InternalError("lock timed out", operation="get_all")
        assert error.code == ErrorCode.STORAGE_LOCK_FAILED
        assert error.details == {"operation": "get_all"}

    def test_validation_error_truncates_value(self):
        error = ValidationError("too long", field="content", value="x" * 500)
        assert error.details["field"] == "content"
        assert len(error.details["value"]) == 100

    def test_tool_error(self):
        error = ToolError(
            "yt-dlp failed", command=["yt-dlp", "--simulate", "u"], returncode=1, stderr="ERROR"
        )
        assert error.code == ErrorCode.TOOL_FAILED
        assert error.details == {"program": "yt-dlp", "returncode": 1, "stderr": "ERROR"}

    def test_fetch_error(self):
        error = FetchError("Failed to download", url="https://a.b", original_error=ToolError("x"))
        assert error.code == ErrorCode.FETCH_FAILED
        assert error.details["url"] == "https://a.b"
        assert isinstance(error, TextpodError)
