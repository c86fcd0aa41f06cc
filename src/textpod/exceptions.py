"""Custom exceptions for the textpod server.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_CONTENT_REQUIRED = 1002
    NOTE_CONTENT_TOO_LONG = 1003

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_LOCK_FAILED = 4003

    # External tool errors (5xxx)
    TOOL_NOT_FOUND = 5001
    TOOL_FAILED = 5002
    TOOL_TIMEOUT = 5003
    FETCH_FAILED = 5004

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    UPLOAD_INVALID = 7002


class TextpodError(Exception):
    """Base exception for all textpod errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteNotFoundError(TextpodError):
    """Raised when a note cannot be found."""

    def __init__(self, note_id: int, message: Optional[str] = None):
        super().__init__(
            message or f"Note #{note_id} not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class StorageError(TextpodError):
    """Raised for storage/persistence errors.

    The in-memory state is never rolled back when this is raised, so the
    notes file may lag behind memory until the next successful rewrite.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.split("/")[-1] if "/" in path else path
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class InternalError(TextpodError):
    """Raised when the note store lock cannot be acquired."""

    def __init__(self, message: str, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, code=ErrorCode.STORAGE_LOCK_FAILED, details=details)
        self.operation = operation


class ValidationError(TextpodError):
    """Raised for input validation errors at the server boundary."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class ToolError(TextpodError):
    """Raised when an external program cannot be run or exits non-zero.

    Attributes:
        command: The command line that failed
        returncode: Exit code (None if the process never ran)
        stderr: Error output, truncated
    """

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        code: ErrorCode = ErrorCode.TOOL_FAILED,
    ):
        details: Dict[str, Any] = {}
        if command:
            details["program"] = command[0]
        if returncode is not None:
            details["returncode"] = returncode
        if stderr:
            details["stderr"] = stderr[:200]

        super().__init__(message, code=code, details=details)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class FetchError(TextpodError):
    """Raised when a local copy of a link could not be produced."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if url:
            details["url"] = url[:200]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=ErrorCode.FETCH_FAILED, details=details)
        self.url = url
        self.original_error = original_error
