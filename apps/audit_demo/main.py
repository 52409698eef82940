"""Demo FastAPI application with audited endpoints.

A tiny notes API whose routes are audited through the audit route class.
Storage backend and creation policy come from AUDIT_* environment variables.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from packages.audit_core import is_configured
from packages.audit_http import (
    CorrelationIdMiddleware,
    audit_route_class,
    get_current_scope,
)
from packages.audit_settings import get_audit_settings
from packages.audit_store import configure_auditing
from packages.structured_logging import get_logger, setup_logging_from_settings

logger = get_logger(__name__)


class NoteCreate(BaseModel):
    """Payload for creating a note."""

    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(default="")


class Note(BaseModel):
    id: int
    title: str
    body: str
    archived: bool = False


# Global note storage
notes: dict[int, Note] = {}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan management."""
    settings = get_audit_settings()
    setup_logging_from_settings(settings)

    # Process-wide audit configuration is installed once
    if not is_configured():
        configure_auditing(settings)
    logger.info("audit_demo_started", **settings.to_dict())

    yield


app = FastAPI(
    title="Audit Demo API",
    description="Notes API with audited endpoints",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)

router = APIRouter(
    prefix="/api/v1/notes",
    tags=["notes"],
    route_class=audit_route_class(include_headers=True, include_model=True),
)


@app.get("/")
async def root() -> dict:
    """Health check endpoint (not audited)."""
    return {"service": "Audit Demo", "status": "healthy"}


@router.post("", response_model=Note, status_code=201)
async def create_note(payload: NoteCreate, request: Request) -> Note:
    note = Note(id=len(notes) + 1, title=payload.title, body=payload.body)
    notes[note.id] = note

    scope = get_current_scope(request)
    if scope is not None:
        scope.set_custom_field("NoteId", note.id)

    return note


@router.get("/{note_id}", response_model=Note)
async def get_note(note_id: int) -> Note:
    note = notes.get(note_id)
    if note is None:
        raise HTTPException(status_code=404, detail=f"Note {note_id} not found")
    return note


@router.post("/{note_id}/archive")
async def archive_note(note_id: int, request: Request, reason: str = Form(...)) -> RedirectResponse:
    """Archive a note and redirect to it."""
    note = notes.get(note_id)
    if note is None:
        raise HTTPException(status_code=404, detail=f"Note {note_id} not found")
    note.archived = True

    scope = get_current_scope(request)
    if scope is not None:
        scope.comment(f"Archived: {reason}")

    return RedirectResponse(url=f"/api/v1/notes/{note_id}", status_code=303)


app.include_router(router)
