#!/usr/bin/env python
"""Main entry point for the textpod server."""
import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn
from pydantic import ValidationError as PydanticValidationError

from textpod import __version__
from textpod.config import TextpodConfig, config
from textpod.exceptions import ErrorCode, StorageError, TextpodError
from textpod.observability import configure_logging
from textpod.server.http_app import create_app
from textpod.server.mcp_server import TextpodMcpServer
from textpod.services.fetcher import Fetcher
from textpod.services.link_classifier import LinkClassifier
from textpod.services.link_resolver import LinkResolver
from textpod.services.note_service import NoteService
from textpod.services.tool_runner import ToolRunner
from textpod.storage.note_store import NoteStore


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="textpod notes server")
    parser.add_argument(
        "-C",
        "--base-directory",
        metavar="DIR",
        help="Change to DIR before doing anything",
        type=str,
    )
    parser.add_argument(
        "-p", "--port", help="Port number for the server", type=int, default=None
    )
    parser.add_argument(
        "-l", "--listen", help="Listen address for the server", type=str, default=None
    )
    parser.add_argument(
        "-f",
        "--notes-file",
        metavar="FILE",
        help="Save notes in FILE",
        type=str,
        default=None,
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("TEXTPOD_LOG_LEVEL", "INFO"),
    )
    parser.add_argument(
        "--mcp",
        help="Serve notes as MCP tools over stdio instead of HTTP",
        action="store_true",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.port is not None:
        config.port = args.port
    if args.listen:
        config.host = args.listen
    if args.notes_file:
        config.notes_file = Path(args.notes_file)

    # Attribute assignment skips validation, so check the result as a whole
    try:
        TextpodConfig.model_validate(config.model_dump())
    except PydanticValidationError as e:
        raise TextpodError(
            f"Invalid configuration: {e}", code=ErrorCode.CONFIG_INVALID
        ) from e


def build_service(attachments_dir: Path) -> NoteService:
    """Load the notes file and wire up link resolution."""
    store = NoteStore.load(config.get_notes_path())
    runner = ToolRunner(timeout=config.fetch_timeout)
    resolver = LinkResolver(
        classifier=LinkClassifier(runner=runner),
        fetcher=Fetcher(runner=runner),
    )
    return NoteService(store, attachments_dir, resolver=resolver)


def main(argv=None):
    """Run the textpod server."""
    args = parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(level=log_level, console=not args.mcp)
    except Exception as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    if args.base_directory:
        try:
            os.chdir(args.base_directory)
        except OSError as e:
            logger.error(f"Could not change directory to {args.base_directory}: {e}")
            sys.exit(1)

    try:
        update_config(args)
    except TextpodError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        attachments_dir = config.get_attachments_dir().resolve()
    except OSError as e:
        logger.error(f"Could not create attachments directory: {e}")
        sys.exit(1)

    try:
        service = build_service(attachments_dir)
    except StorageError as e:
        logger.error(f"Failed to load notes: {e}")
        sys.exit(1)

    if args.mcp:
        try:
            logger.info("Starting textpod MCP server")
            TextpodMcpServer(service).run()
        except Exception as e:
            logger.error(f"Error running server: {e}")
            sys.exit(1)
        return

    app = create_app(service, attachments_dir)
    logger.info(f"Starting server on http://{config.host}:{config.port}")
    try:
        uvicorn.run(app, host=config.host, port=config.port, log_level=log_level)
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
