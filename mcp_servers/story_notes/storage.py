"""Repositories that load and save the note tree.

The tree store only sees ``load()`` and ``save(items)``; swapping one
repository for another never changes how the tree behaves.
"""

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError as SchemaError

from .models import NoteItem, NoteTreeSnapshot

logger = logging.getLogger("story_notes.storage")


class NoteRepository(Protocol):
    """Persistence seam behind the tree store."""

    def load(self) -> list[NoteItem]: ...

    def save(self, items: list[NoteItem]) -> None: ...


class InMemoryRepository:
    """Keeps the last saved snapshot as a list.

    Items are immutable once stored (the tree replaces them through
    ``model_copy``), so a shallow list copy is enough.
    """

    def __init__(self, items: list[NoteItem] | None = None) -> None:
        self._items = list(items or [])

    def load(self) -> list[NoteItem]:
        return list(self._items)

    def save(self, items: list[NoteItem]) -> None:
        self._items = list(items)


class JsonFileRepository:
    """Manages note tree persistence using a local JSON file."""

    def __init__(self, storage_path: Path) -> None:
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[NoteItem]:
        """Load items from disk. Creates the file if missing."""
        if not self._path.exists():
            logger.info("No storage file found at %s — starting fresh", self._path)
            self.save([])
            return []
        try:
            snapshot = NoteTreeSnapshot.model_validate_json(
                self._path.read_text(encoding="utf-8")
            )
        except (json.JSONDecodeError, UnicodeDecodeError, SchemaError) as exc:
            logger.error("Failed to load notes from %s: %s", self._path, exc)
            raise
        logger.info("Loaded %d items from %s", len(snapshot.items), self._path)
        return list(snapshot.items)

    def save(self, items: list[NoteItem]) -> None:
        """Write the snapshot to a temp file, then rename it into place."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        temp_path.write_text(
            NoteTreeSnapshot(items=items).model_dump_json(indent=2),
            encoding="utf-8",
        )
        temp_path.replace(self._path)
