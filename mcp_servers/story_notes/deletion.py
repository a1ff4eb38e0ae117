"""Guarded cascade deletion.

Deleting goes ``IDLE -> PENDING_CONFIRMATION -> CONFIRMED -> EXECUTED`` when
the target holds meaningful content, and straight ``IDLE -> EXECUTED``
otherwise. A pending deletion can be cancelled back to ``IDLE``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from .errors import DeletionStateError, NotFoundError
from .guard import collect_descendants, has_meaningful_content
from .models import ItemKind, NoteItem

if TYPE_CHECKING:
    from .tree import TreeStore

logger = logging.getLogger("story_notes.deletion")

ConfirmDeletion = Callable[[str, ItemKind], bool]
"""Confirmation dialog: receives the target's name and kind, returns a decision."""


class DeleteState(str, Enum):
    IDLE = "idle"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    EXECUTED = "executed"


class DeletionProtocol:
    """One deletion attempt against a tree store."""

    def __init__(self, tree: TreeStore) -> None:
        self._tree = tree
        self.state = DeleteState.IDLE
        self.target: NoteItem | None = None
        self.removed: frozenset[str] = frozenset()

    @property
    def pending(self) -> bool:
        return self.state is DeleteState.PENDING_CONFIRMATION

    def request(self, item_id: str) -> DeleteState:
        """Start deleting ``item_id``.

        Raises:
            NotFoundError: If the item does not exist; nothing changes.
            DeletionStateError: If this protocol was already used.
        """
        if self.state is not DeleteState.IDLE:
            raise DeletionStateError(self.state.value, "request a deletion")
        target = self._tree.get(item_id)
        self.target = target
        if has_meaningful_content(self._tree, target, self._tree.placeholder):
            self.state = DeleteState.PENDING_CONFIRMATION
            logger.info("Deletion of %s '%s' awaits confirmation", target.kind, target.id)
            return self.state
        self._execute()
        return self.state

    def confirm(self) -> frozenset[str]:
        """Accept a pending deletion and execute it.

        Raises:
            NotFoundError: If the target was removed while pending; the
                protocol returns to ``IDLE``.
        """
        if not self.pending:
            raise DeletionStateError(self.state.value, "confirm")
        self.state = DeleteState.CONFIRMED
        self._execute()
        return self.removed

    def cancel(self) -> None:
        """Drop a pending deletion; the store is left untouched."""
        if not self.pending:
            raise DeletionStateError(self.state.value, "cancel")
        logger.info("Deletion of '%s' cancelled", self.target.id)
        self.state = DeleteState.IDLE
        self.target = None

    def run(self, item_id: str, confirm: ConfirmDeletion | None) -> frozenset[str]:
        """Drive the whole protocol synchronously.

        Without a ``confirm`` callback, deletions that need confirmation
        are cancelled.
        """
        if self.request(item_id) is DeleteState.EXECUTED:
            return self.removed
        if confirm is not None and confirm(self.target.name, ItemKind(self.target.kind)):
            return self.confirm()
        self.cancel()
        return frozenset()

    def _execute(self) -> None:
        target_id = self.target.id
        if target_id not in self._tree:
            logger.warning("Deletion target '%s' vanished before execution", target_id)
            self.state = DeleteState.IDLE
            self.target = None
            raise NotFoundError(target_id)
        ids = collect_descendants(self._tree, target_id)
        ids.add(target_id)
        self._tree._remove_items(ids)
        self.removed = frozenset(ids)
        self.state = DeleteState.EXECUTED
