"""Subprocess wrapper for the external programs used to fetch links.

Every external program (the webpage archiver, the media downloader and its
probe mode) is run through ToolRunner so spawn failures, timeouts and
non-zero exits all surface as ToolError with the same shape.
"""

import logging
import subprocess
from typing import List, Optional

from textpod.exceptions import ErrorCode, ToolError

logger = logging.getLogger(__name__)


class ToolRunner:
    """Run external programs as isolated child processes.

    Output is captured as UTF-8 text with undecodable bytes replaced.
    Calls are blocking, so callers are expected to be on a background
    thread.
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize the runner.

        Args:
            timeout: Seconds before a child process is killed. None waits
                     for as long as the program takes.
        """
        self.timeout = timeout

    def run(self, command: List[str]) -> subprocess.CompletedProcess:
        """Run a command and wait for it to finish.

        Args:
            command: Program name followed by its arguments

        Returns:
            CompletedProcess with captured stdout and stderr

        Raises:
            ToolError: If the program is missing, times out or exits non-zero
        """
        logger.debug(f"Running {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                check=False,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ToolError(
                f"{command[0]} is not installed or not in PATH",
                command=command,
                code=ErrorCode.TOOL_NOT_FOUND,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ToolError(
                f"{command[0]} timed out after {self.timeout}s",
                command=command,
                code=ErrorCode.TOOL_TIMEOUT,
            ) from e
        except OSError as e:
            raise ToolError(
                f"Failed to start {command[0]}: {e}",
                command=command,
            ) from e

        if result.returncode != 0:
            raise ToolError(
                f"{command[0]} exited with status {result.returncode}",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr.strip() if result.stderr else None,
            )

        return result
