"""A notebook session: one tree store, one cursor, one pending deletion."""

from __future__ import annotations

import logging

from .config import Settings
from .deletion import DeleteState, DeletionProtocol
from .errors import DeletionStateError
from .navigation import NavigationCursor, resolve_path
from .storage import InMemoryRepository, JsonFileRepository, NoteRepository
from .tree import TreeStore

logger = logging.getLogger("story_notes.session")


class NotebookSession:
    """Owns the state behind a single user's notes view."""

    def __init__(self, store: TreeStore, root_label: str) -> None:
        self.store = store
        self.cursor = NavigationCursor(store)
        self.root_label = root_label
        self._pending: DeletionProtocol | None = None

    @classmethod
    def open(cls, settings: Settings) -> NotebookSession:
        """Build a session from settings; JSON-backed when a path is set."""
        repository: NoteRepository
        if settings.storage_path is not None:
            repository = JsonFileRepository(settings.storage_path)
        else:
            repository = InMemoryRepository()
        store = TreeStore(repository, placeholder=settings.empty_placeholder)
        logger.info("Opened notebook session with %d items", store.count)
        return cls(store, settings.root_label)

    def close(self) -> None:
        self._pending = None
        self.cursor.reset()
        logger.info("Closed notebook session")

    def breadcrumb(self) -> list[str]:
        return resolve_path(self.store, self.cursor, self.root_label)

    @property
    def pending_deletion(self) -> DeletionProtocol | None:
        return self._pending

    def request_delete(self, item_id: str) -> DeletionProtocol:
        """Start a deletion; it stays pending when confirmation is needed.

        A new request replaces any deletion still waiting for an answer.
        """
        protocol = DeletionProtocol(self.store)
        protocol.request(item_id)
        self._pending = protocol if protocol.state is DeleteState.PENDING_CONFIRMATION else None
        return protocol

    def confirm_delete(self) -> frozenset[str]:
        protocol = self._take_pending("confirm")
        return protocol.confirm()

    def cancel_delete(self) -> None:
        protocol = self._take_pending("cancel")
        protocol.cancel()

    def _take_pending(self, action: str) -> DeletionProtocol:
        protocol, self._pending = self._pending, None
        if protocol is None:
            raise DeletionStateError(DeleteState.IDLE.value, action)
        return protocol
