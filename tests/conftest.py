"""Common test fixtures for the textpod server."""

import tempfile
from pathlib import Path

import pytest

from tests.fakes import FakeClassifier, FakeFetcher
from textpod.config import config
from textpod.observability import metrics
from textpod.services.link_resolver import LinkResolver
from textpod.services.note_service import NoteService
from textpod.storage.note_store import NoteStore


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep metrics from leaking between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def temp_dirs():
    """Create temporary directories for the notes file and attachments."""
    with tempfile.TemporaryDirectory() as notes_dir:
        with tempfile.TemporaryDirectory() as attachments_dir:
            yield Path(notes_dir), Path(attachments_dir).resolve()


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    notes_dir, attachments_dir = temp_dirs
    monkeypatch.setattr(config, "notes_file", notes_dir / "notes.md")
    monkeypatch.setattr(config, "attachments_dir", attachments_dir)
    monkeypatch.setattr(config, "link_resolution_enabled", True)
    monkeypatch.setattr(config, "lock_timeout", 5.0)
    yield config


@pytest.fixture
def notes_path(test_config):
    """Path of the (not yet existing) notes file."""
    return test_config.get_notes_path()


@pytest.fixture
def attachments_dir(test_config):
    """Absolute attachments directory."""
    return test_config.get_attachments_dir()


@pytest.fixture
def note_store(notes_path):
    """Create a file-backed note store."""
    return NoteStore.load(notes_path)


@pytest.fixture
def fake_fetcher():
    """Fetcher that writes placeholder files instead of running tools."""
    return FakeFetcher()


@pytest.fixture
def link_resolver(fake_fetcher):
    """Link resolver wired to fake tools."""
    return LinkResolver(classifier=FakeClassifier(), fetcher=fake_fetcher)


@pytest.fixture
def note_service(note_store, attachments_dir, link_resolver):
    """Create a NoteService with fake link fetching."""
    return NoteService(note_store, attachments_dir, resolver=link_resolver)
