"""HTTP API for textpod."""

import base64
import logging
import uuid
from pathlib import Path
from typing import List

from fastapi import Body, FastAPI, File, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from textpod.config import config
from textpod.exceptions import ErrorCode, TextpodError, ValidationError
from textpod.models.schema import Note
from textpod.observability import is_logging_configured, metrics
from textpod.services.note_service import NoteService
from textpod.services.uploads import save_upload

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

_STATUS_BY_CODE = {
    ErrorCode.NOTE_NOT_FOUND: 404,
    ErrorCode.NOTE_CONTENT_REQUIRED: 400,
    ErrorCode.NOTE_CONTENT_TOO_LONG: 413,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.UPLOAD_INVALID: 400,
}


def build_index_html() -> str:
    """Index page with the favicon inlined as a data URI."""
    favicon = base64.b64encode((STATIC_DIR / "favicon.svg").read_bytes()).decode()
    template = (STATIC_DIR / "index.html").read_text(encoding="utf-8")
    return template.replace("{{FAVICON}}", f"data:image/svg+xml;base64,{favicon}")


def create_app(service: NoteService, attachments_dir: Path) -> FastAPI:
    """Build the FastAPI application around a note service.

    Args:
        service: Note service all endpoints delegate to
        attachments_dir: Directory served under config.public_attachments_path
    """
    app = FastAPI(title="textpod", version=config.server_version)
    index_html = build_index_html()
    public_path = config.public_attachments_path.rstrip("/")

    @app.exception_handler(TextpodError)
    async def textpod_error_handler(request: Request, exc: TextpodError) -> JSONResponse:
        status = _STATUS_BY_CODE.get(exc.code, 500)
        if status >= 500:
            # Don't leak paths or internals; log them with a reference instead
            error_id = str(uuid.uuid4())[:8]
            logger.error(f"[{exc.code.name}] [{error_id}]: {exc}")
            return JSONResponse(
                status_code=status,
                content={"error": exc.code.name, "message": f"Internal error (ref: {error_id})"},
            )
        return JSONResponse(status_code=status, content=exc.to_dict())

    # route / (root)
    @app.get("/", response_class=HTMLResponse)
    def index() -> str:
        return index_html

    @app.get("/health")
    def health() -> dict:
        return {
            "status": "ok",
            "notes": len(service.store),
            "file_logging": is_logging_configured(),
            **metrics.get_summary(),
        }

    # GET /notes
    @app.get("/notes", response_model=List[Note])
    def get_notes() -> List[Note]:
        return service.get_all_notes()

    # POST /notes
    @app.post("/notes", response_model=Note)
    def save_note(content: str = Body(...)) -> Note:
        return service.create_note(content)

    # GET /notes/{id}
    @app.get("/notes/{note_id}", response_model=Note)
    def get_note_by_id(note_id: int) -> Note:
        return service.get_note(note_id)

    # PUT /notes/{id}
    @app.put("/notes/{note_id}", response_model=Note)
    def update_note(note_id: int, content: str = Body(...)) -> Note:
        return service.update_note(note_id, content)

    # DELETE /notes/{id}
    @app.delete("/notes/{note_id}", status_code=204)
    def delete_note_by_id(note_id: int) -> Response:
        service.delete_note(note_id)
        return Response(status_code=204)

    # POST /upload
    @app.post("/upload")
    def upload_file(file: UploadFile = File(...)) -> str:
        data = file.file.read(config.max_upload_bytes + 1)
        if len(data) > config.max_upload_bytes:
            raise ValidationError(
                f"Upload exceeds {config.max_upload_bytes} bytes",
                field="file",
                code=ErrorCode.UPLOAD_INVALID,
            )
        path = save_upload(attachments_dir, file.filename, data)
        return f"{public_path}/{path.name}"

    app.mount(
        public_path,
        StaticFiles(directory=str(attachments_dir)),
        name="attachments",
    )

    return app
