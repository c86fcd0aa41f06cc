"""Service layer shared by the HTTP and MCP surfaces."""

import logging
import re
from pathlib import Path
from typing import List, Optional

from textpod.config import config
from textpod.exceptions import ErrorCode, NoteNotFoundError, ValidationError
from textpod.models.schema import Note
from textpod.observability import timed_operation
from textpod.services.link_resolver import LinkJob, LinkResolver, NoteLinkDelegate
from textpod.storage.note_store import NoteStore

logger = logging.getLogger(__name__)


_RULE_LINE_RE = re.compile(r"^---$", re.MULTILINE)


def neutralize_delimiter(content: str) -> str:
    """Stop user text from forging a record boundary in the notes file.

    A line holding only ``---`` becomes ``<hr>``, which renders the same.
    Table separators such as ``|---|---|`` are left alone.
    """
    return _RULE_LINE_RE.sub("<hr>", content)


class NoteService:
    """Note operations with validation, metrics and link resolution."""

    def __init__(
        self,
        store: NoteStore,
        attachments_dir: Path,
        resolver: Optional[LinkResolver] = None,
        link_resolution_enabled: Optional[bool] = None,
    ):
        """Initialize the service.

        Args:
            store: Note storage backend
            attachments_dir: Root of the attachments tree
            resolver: Link resolver; marker links are left alone when None
            link_resolution_enabled: Overrides config.link_resolution_enabled
        """
        self.store = store
        self.attachments_dir = attachments_dir
        self.resolver = resolver
        self.link_resolution_enabled = (
            link_resolution_enabled
            if link_resolution_enabled is not None
            else config.link_resolution_enabled
        )

    def _validate_content(self, content: str) -> None:
        if not content or not content.strip():
            raise ValidationError(
                "Note content cannot be empty",
                field="content",
                code=ErrorCode.NOTE_CONTENT_REQUIRED,
            )
        if len(content) > config.max_content_length:
            raise ValidationError(
                f"Content exceeds maximum length of {config.max_content_length} characters",
                field="content",
                code=ErrorCode.NOTE_CONTENT_TOO_LONG,
            )

    def _resolve_links(self, note_id: int, content: str) -> List[LinkJob]:
        if self.resolver is None or not self.link_resolution_enabled:
            return []
        delegate = NoteLinkDelegate(
            store=self.store,
            note_id=note_id,
            attachments_dir=self.attachments_dir,
            public_path=config.public_attachments_path,
        )
        return self.resolver.resolve_links(note_id, content, delegate)

    def create_note(self, content: str) -> Note:
        """Create a note and start fetching its marker links."""
        with timed_operation("create_note") as op:
            self._validate_content(content)
            note = self.store.create(neutralize_delimiter(content))
            op["note_id"] = note.id
            logger.info(f"Note created: {note}")
            op["links"] = len(self._resolve_links(note.id, note.content))
            return note

    def update_note(self, note_id: int, content: str) -> Note:
        """Replace a note's content and start fetching any new marker links.

        Raises:
            NoteNotFoundError: If the note does not exist
        """
        with timed_operation("update_note", note_id=note_id) as op:
            self._validate_content(content)
            if self.store.get_by_id(note_id) is None:
                raise NoteNotFoundError(note_id)
            content = neutralize_delimiter(content)
            self.store.update(note_id, content)
            logger.info(f"Note updated: #{note_id}")
            op["links"] = len(self._resolve_links(note_id, content))
            note = self.store.get_by_id(note_id)
            if note is None:
                # Deleted between the update and the read
                raise NoteNotFoundError(note_id)
            return note

    def delete_note(self, note_id: int) -> None:
        """Delete a note; deleting a missing note is not an error."""
        with timed_operation("delete_note", note_id=note_id):
            self.store.delete(note_id)
            logger.info(f"Note deleted: #{note_id}")

    def get_note(self, note_id: int) -> Note:
        """Get a note.

        Raises:
            NoteNotFoundError: If the note does not exist
        """
        note = self.store.get_by_id(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    def get_all_notes(self) -> List[Note]:
        return self.store.get_all()
