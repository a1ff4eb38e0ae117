"""Folder navigation and breadcrumb rendering."""

from __future__ import annotations

import logging

from .config import ROOT_LABEL
from .errors import ItemTypeError, ReferentialError
from .models import ItemKind, NoteItem
from .tree import TreeStore

logger = logging.getLogger("story_notes.navigation")


class NavigationCursor:
    """Stack of folder ids describing where the user currently is.

    An empty stack is the root. Each id is a child of the one before it.
    If a folder on the path disappears, the stack is cut back to the last
    folder that still exists the next time it is read.
    """

    def __init__(self, tree: TreeStore) -> None:
        self._tree = tree
        self._stack: list[str] = []

    @property
    def stack(self) -> list[str]:
        self._recover()
        return list(self._stack)

    @property
    def depth(self) -> int:
        return len(self.stack)

    def current_folder(self) -> str | None:
        """Top of the stack, or None at the root."""
        self._recover()
        return self._stack[-1] if self._stack else None

    def items(self) -> list[NoteItem]:
        """Items listed in the current folder."""
        return self._tree.list(self.current_folder())

    def enter(self, folder_id: str) -> None:
        """Open a folder listed in the current view.

        Raises:
            NotFoundError: If the folder does not exist.
            ItemTypeError: If the id belongs to a file.
            ReferentialError: If the folder is not inside the current one.
        """
        item = self._tree.get(folder_id)
        if item.kind != ItemKind.FOLDER:
            raise ItemTypeError(folder_id, expected="folder", actual=item.kind)
        current = self.current_folder()
        if item.parent_id != current:
            raise ReferentialError(
                folder_id,
                f"Folder '{folder_id}' is not inside the current folder '{current or 'root'}'",
            )
        self._stack.append(folder_id)

    def back(self) -> None:
        """Go up one level; does nothing at the root."""
        self._recover()
        if self._stack:
            self._stack.pop()

    def go_to(self, folder_id: str) -> None:
        """Jump straight to any folder."""
        item = self._tree.get(folder_id)
        if item.kind != ItemKind.FOLDER:
            raise ItemTypeError(folder_id, expected="folder", actual=item.kind)
        self._stack = self._tree.ancestor_chain(folder_id)

    def reset(self) -> None:
        self._stack = []

    def _recover(self) -> None:
        for index, folder_id in enumerate(self._stack):
            if (
                folder_id not in self._tree
                or self._tree.get(folder_id).kind != ItemKind.FOLDER
            ):
                logger.warning(
                    "Folder %s vanished from the active path, truncating at depth %d",
                    folder_id,
                    index,
                )
                del self._stack[index:]
                return


def resolve_path(
    tree: TreeStore, cursor: NavigationCursor, root_label: str = ROOT_LABEL
) -> list[str]:
    """Display names from the root label down to the current folder."""
    return [root_label, *(tree.get(folder_id).name for folder_id in cursor.stack)]
