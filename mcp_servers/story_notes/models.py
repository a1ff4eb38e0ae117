"""Pydantic models for the Story Notes tree."""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from . import config


def _now() -> datetime:
    return datetime.now(UTC)


class ItemKind(str, Enum):
    """Variant tag of a note item."""

    FOLDER = "folder"
    FILE = "file"


class NoteLink(BaseModel):
    """Reference from a file to an entity elsewhere in the book."""

    id: str = Field(default_factory=lambda: f"link-{uuid4()}")
    entity_id: str = Field(..., min_length=1, description="Linked entity id")
    entity_type: str = Field(..., description="character, beast, world, item, ...")
    created_at: datetime = Field(default_factory=_now)


class _NoteItemBase(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(..., description="Display name, siblings may share it")
    parent_id: str | None = Field(default=None, description="Containing folder id")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class NoteFolder(_NoteItemBase):
    """A folder that may contain files and other folders."""

    kind: Literal["folder"] = "folder"


class NoteFile(_NoteItemBase):
    """A file holding opaque rich-text content and entity links."""

    kind: Literal["file"] = "file"
    content: str = Field(
        default_factory=lambda: config.settings.empty_placeholder,
        description="Serialized rich text",
    )
    links: list[NoteLink] = Field(default_factory=list)


NoteItem = Annotated[NoteFolder | NoteFile, Field(discriminator="kind")]


class NoteTreeSnapshot(BaseModel):
    """Container for every item, used for JSON serialization."""

    items: list[NoteItem] = Field(default_factory=list)
