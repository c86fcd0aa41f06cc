"""Storage layer for the textpod server."""

from textpod.storage.note_store import NoteStore

__all__ = [
    "NoteStore",
]
