from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from app.api.dependencies import get_note_service
from app.core.rate_limit import headers_from_result, resolve_client_id
from app.schemas.notes import (
    CreateNoteRequest,
    CreateNoteResponse,
    IdentifierResponse,
    NoteResponse,
)
from app.services.note_service import NoteService
from app.utils.identifiers import format_identifier, generate_identifier

router = APIRouter(tags=["Notes"])


@router.post(
    "/notes",
    response_model=CreateNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_note(
    payload: CreateNoteRequest,
    service: NoteService = Depends(get_note_service),
) -> CreateNoteResponse:
    """Store a note for 72 hours.

    When ``identifier`` is omitted a fresh one is generated. Writing to an
    identifier that already holds a live note replaces it.

    Raises:
        ValidationAppError: 400 for an empty narrative or malformed identifier.
        StoreUnavailableAppError: 503 when storage is down (retryable).
    """
    created = service.create(payload.narrative, payload.identifier)
    return CreateNoteResponse(
        id=created.id,
        display_id=format_identifier(created.id, use_hyphens=True),
        created_at=created.created_at,
        expires_at=created.expires_at,
    )


@router.get("/notes/{identifier}", response_model=NoteResponse)
def get_note(
    identifier: str,
    request: Request,
    response: Response,
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    """Retrieve a note by identifier.

    Rate limited per client address; repeated failed lookups lead to a
    temporary ban. Every response carries X-RateLimit-* headers.

    Raises:
        RateLimitedAppError: 429 when over the limit or banned.
        ValidationAppError: 400 for a malformed identifier.
        NotFoundAppError: 404 when no note exists.
        ExpiredAppError: 410 when the note outlived its retention window.
        CorruptDataAppError: 500 when the stored payload is unreadable.
        StoreUnavailableAppError: 503 when storage is down (retryable).
    """
    client_id = resolve_client_id(request)
    note = service.retrieve(client_id, identifier)
    response.headers.update(headers_from_result(note.rate_limit))
    return NoteResponse(
        id=note.id,
        narrative=note.narrative,
        created_at=note.created_at,
        expires_at=note.expires_at,
    )


@router.post(
    "/identifiers",
    response_model=IdentifierResponse,
    status_code=status.HTTP_201_CREATED,
)
def issue_identifier() -> IdentifierResponse:
    """Generate a fresh identifier for a note that will be created later."""
    identifier = generate_identifier()
    return IdentifierResponse(
        id=identifier,
        display_id=format_identifier(identifier, use_hyphens=True),
    )
