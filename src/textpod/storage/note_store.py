"""Flat-file note storage.

All notes live in memory and are mirrored to a single text file:

    2024-01-01 00:00:00
    first note

    ---

    2024-01-02 00:00:00
    second note

    ---

Each record is ``timestamp + "\\n" + content + RECORD_DELIMITER``. The file
never stores HTML; it is re-rendered when the file is loaded. Creating a
note appends one record, updating or deleting rewrites the whole file.
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from textpod.config import config
from textpod.exceptions import ErrorCode, InternalError, StorageError
from textpod.models.schema import Note
from textpod.storage.markdown_renderer import render_markdown
from textpod.utils import local_timestamp

logger = logging.getLogger(__name__)

RECORD_DELIMITER = "\n\n---\n\n"


def format_record(note: Note) -> str:
    """Serialize a note to its on-disk record."""
    return f"{note.timestamp}\n{note.content}{RECORD_DELIMITER}"


def normalize_content(content: str) -> str:
    """Content in the form it reads back from the notes file.

    Loading strips each record, so writes store stripped text as well.
    """
    return content.strip()


def parse_records(text: str) -> List[Tuple[str, str]]:
    """Split notes file text into ``(timestamp, content)`` pairs in file order.

    Whitespace-only chunks are skipped. A chunk without a newline is taken
    as content only and stamped with the current time.
    """
    records = []
    for chunk in text.split(RECORD_DELIMITER):
        if not chunk.strip():
            continue
        timestamp, sep, content = chunk.partition("\n")
        if sep:
            records.append((timestamp.strip(), content.strip()))
        else:
            records.append((local_timestamp(), chunk))
    return records


class NoteStore:
    """Thread-safe store for notes backed by a flat file.

    Every operation takes the same lock, so all reads and writes happen in
    one total order. Mutations keep the lock while the file is written, but
    nothing else (rendering aside) runs under it.

    The in-memory list is authoritative once loaded. When a file write
    fails the change is kept in memory and a StorageError is raised; the
    next successful rewrite brings the file back in line.
    """

    def __init__(
        self,
        notes: Optional[Iterable[Note]] = None,
        path: Optional[Path] = None,
        lock_timeout: Optional[float] = None,
    ):
        """Initialize the store.

        Args:
            notes: Initial notes, kept in the given order.
            path: Backing file. When None, nothing is persisted.
            lock_timeout: Seconds to wait for the store lock before raising
                InternalError. Defaults to config.lock_timeout.
        """
        self.path = path
        self.lock_timeout = (
            lock_timeout if lock_timeout is not None else config.lock_timeout
        )
        self._notes: List[Note] = list(notes or [])
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Path, lock_timeout: Optional[float] = None) -> "NoteStore":
        """Load a store from ``path``; a missing file yields an empty store.

        Raises:
            StorageError: If the file exists but cannot be read.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"Notes file {path} not found, starting empty")
            text = ""
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(
                "Failed to read notes file",
                operation="load",
                path=str(path),
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

        notes = [
            Note(
                id=index,
                timestamp=timestamp,
                content=content,
                html=render_markdown(content),
            )
            for index, (timestamp, content) in enumerate(parse_records(text))
        ]
        logger.info(f"Loaded {len(notes)} notes from {path}")
        return cls(notes=notes, path=path, lock_timeout=lock_timeout)

    @classmethod
    def in_memory(cls, notes: Optional[Iterable[Note]] = None) -> "NoteStore":
        """Create a store that never touches the filesystem."""
        return cls(notes=notes, path=None)

    @contextmanager
    def _locked(self, operation: str) -> Iterator[List[Note]]:
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise InternalError(
                f"Timed out after {self.lock_timeout}s waiting for the note store lock",
                operation=operation,
            )
        try:
            yield self._notes
        finally:
            self._lock.release()

    def _next_id(self) -> int:
        return max((note.id for note in self._notes), default=-1) + 1

    def _index_of(self, note_id: int) -> Optional[int]:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return None

    def _append_to_file(self, note: Note) -> None:
        if self.path is None:
            return
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(format_record(note))
        except OSError as e:
            raise StorageError(
                f"Failed to append note {note}",
                operation="create",
                path=str(self.path),
                original_error=e,
            ) from e

    def _rewrite_file(self, operation: str) -> None:
        if self.path is None:
            return
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                for note in self._notes:
                    f.write(format_record(note))
        except OSError as e:
            raise StorageError(
                "Failed to rewrite notes file",
                operation=operation,
                path=str(self.path),
                original_error=e,
            ) from e

    def create(self, content: str) -> Note:
        """Create a note and append it to the file.

        Raises:
            StorageError: If the append fails. The note is still in memory.
            InternalError: If the store lock cannot be acquired.
        """
        content = normalize_content(content)
        html = render_markdown(content)
        with self._locked("create") as notes:
            note = Note(
                id=self._next_id(),
                timestamp=local_timestamp(),
                content=content,
                html=html,
            )
            notes.append(note)
            self._append_to_file(note)
            return note.model_copy()

    def update(self, note_id: int, content: str) -> None:
        """Replace a note's content; unknown ids are ignored.

        Raises:
            StorageError: If the rewrite fails. Memory is still updated.
            InternalError: If the store lock cannot be acquired.
        """
        content = normalize_content(content)
        html = render_markdown(content)
        with self._locked("update") as notes:
            index = self._index_of(note_id)
            if index is None:
                logger.debug(f"Update of unknown note #{note_id} ignored")
                return
            notes[index] = notes[index].model_copy(
                update={"content": content, "html": html}
            )
            self._rewrite_file("update")

    def update_with(self, note_id: int, transform: Callable[[str], str]) -> bool:
        """Atomically rewrite a note's content from its current value.

        ``transform`` is called with the stored content while the lock is
        held, so concurrent callers never overwrite each other's changes.
        It must be quick and must not call back into the store.

        Returns:
            False if the note does not exist, True otherwise.

        Raises:
            StorageError: If the rewrite fails. Memory is still updated.
            InternalError: If the store lock cannot be acquired.
        """
        with self._locked("update") as notes:
            index = self._index_of(note_id)
            if index is None:
                logger.debug(f"Rewrite of unknown note #{note_id} ignored")
                return False
            current = notes[index]
            content = normalize_content(transform(current.content))
            if content == current.content:
                return True
            notes[index] = current.model_copy(
                update={"content": content, "html": render_markdown(content)}
            )
            self._rewrite_file("update")
            return True

    def delete(self, note_id: int) -> None:
        """Remove a note; unknown ids are ignored.

        Raises:
            StorageError: If the rewrite fails. Memory is still updated.
            InternalError: If the store lock cannot be acquired.
        """
        with self._locked("delete") as notes:
            index = self._index_of(note_id)
            if index is None:
                logger.debug(f"Delete of unknown note #{note_id} ignored")
                return
            del notes[index]
            self._rewrite_file("delete")

    def get_all(self) -> List[Note]:
        """Return copies of all notes in insertion order."""
        try:
            with self._locked("get_all") as notes:
                return [note.model_copy() for note in notes]
        except InternalError as e:
            logger.error(f"Failed to lock note store: {e}")
            return []

    def get_by_id(self, note_id: int) -> Optional[Note]:
        """Return a copy of the note with ``note_id``, or None."""
        try:
            with self._locked("get_by_id") as notes:
                index = self._index_of(note_id)
                return notes[index].model_copy() if index is not None else None
        except InternalError as e:
            logger.error(f"Failed to lock note store: {e}")
            return None

    def __len__(self) -> int:
        with self._locked("count") as notes:
            return len(notes)
