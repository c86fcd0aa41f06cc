"""MCP server implementation for textpod."""

import json
import logging
import uuid

from mcp.server.fastmcp import FastMCP

from textpod.config import config
from textpod.exceptions import TextpodError
from textpod.models.schema import Note
from textpod.observability import is_logging_configured, metrics
from textpod.services.note_service import NoteService

logger = logging.getLogger(__name__)


def _format_note(note: Note) -> str:
    return f"Note #{note.id} ({note.timestamp})\n\n{note.content}"


class TextpodMcpServer:
    """MCP server exposing textpod notes as tools."""

    def __init__(self, service: NoteService):
        """Initialize the MCP server.

        Args:
            service: Note service shared with the HTTP surface
        """
        self.mcp = FastMCP(config.server_name)
        self.service = service
        self._register_tools()
        logger.info("textpod MCP server initialized")

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        # Generate a unique error ID for traceability in logs
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, TextpodError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, (IOError, OSError)):
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.mcp.tool(name="textpod_create_note")
        def textpod_create_note(content: str) -> str:
            """Create a new note.
            Args:
                content: Markdown content. Prefix a link with '+' (e.g. +https://example.com)
                    to have a local copy fetched in the background.
            """
            try:
                note = self.service.create_note(content)
                return f"Note created successfully with ID: {note.id}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="textpod_update_note")
        def textpod_update_note(note_id: int, content: str) -> str:
            """Replace the content of an existing note.
            Args:
                note_id: The ID of the note to update
                content: The new markdown content
            """
            try:
                note = self.service.update_note(note_id, content)
                return f"Note #{note.id} updated successfully"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="textpod_delete_note")
        def textpod_delete_note(note_id: int) -> str:
            """Delete a note.
            Args:
                note_id: The ID of the note to delete
            """
            try:
                self.service.delete_note(note_id)
                return f"Note #{note_id} deleted successfully"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="textpod_get_note")
        def textpod_get_note(note_id: int) -> str:
            """Retrieve a note by ID.
            Args:
                note_id: The ID of the note
            """
            try:
                return _format_note(self.service.get_note(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="textpod_list_notes")
        def textpod_list_notes(limit: int = 20) -> str:
            """List the most recent notes, newest first.
            Args:
                limit: Maximum number of notes to return (default: 20)
            """
            try:
                notes = self.service.get_all_notes()
                if not notes:
                    return "No notes found."
                recent = list(reversed(notes))[: max(limit, 1)]
                output = f"Showing {len(recent)} of {len(notes)} notes:\n\n"
                output += "\n\n---\n\n".join(_format_note(note) for note in recent)
                return output
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="textpod_health")
        def textpod_health() -> str:
            """Report server uptime and per-operation metrics."""
            try:
                return json.dumps(
                    {
                        "file_logging": is_logging_configured(),
                        "summary": metrics.get_summary(),
                        "operations": metrics.get_metrics(),
                    },
                    indent=2,
                )
            except Exception as e:
                return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server over stdio."""
        self.mcp.run()
