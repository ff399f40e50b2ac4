"""Pydantic schemas for note storage and the notes API.

Wire and storage formats use camelCase keys (``createdAt``); Python code
uses snake_case attributes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting either casing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NoteRecord(CamelModel):
    """Payload persisted in the key-value store for one note.

    Immutable after creation; expiry is judged from ``created_at``.
    """

    narrative: str = Field(..., min_length=1, strict=True, description="Trimmed note text.")
    created_at: int = Field(
        ..., ge=0, strict=True, description="Creation time in epoch milliseconds."
    )

    model_config = ConfigDict(frozen=True, extra="ignore")


class CreateNoteRequest(CamelModel):
    """Request body for creating a note."""

    narrative: str = Field(
        ...,
        description="Note text. Surrounding whitespace is trimmed; must not be empty.",
    )
    identifier: str | None = Field(
        default=None,
        description=(
            "Identifier to store the note under (hyphens/spaces/case ignored). "
            "A fresh one is generated when omitted."
        ),
    )


class CreateNoteResponse(CamelModel):
    """Response returned after a note is stored."""

    id: str = Field(..., description="Canonical identifier (storage form).")
    display_id: str = Field(..., description="Identifier formatted for display (XXXX-XXXX).")
    created_at: int = Field(..., description="Creation time in epoch milliseconds.")
    expires_at: int = Field(..., description="Expiry time in epoch milliseconds.")


class NoteResponse(CamelModel):
    """Response returned when a note is retrieved."""

    id: str = Field(..., description="Canonical identifier.")
    narrative: str = Field(..., description="Stored note text.")
    created_at: int = Field(..., description="Creation time in epoch milliseconds.")
    expires_at: int = Field(..., description="Expiry time in epoch milliseconds.")


class IdentifierResponse(CamelModel):
    """A freshly generated identifier."""

    id: str = Field(..., description="Canonical identifier (storage form).")
    display_id: str = Field(..., description="Identifier formatted for display (XXXX-XXXX).")
