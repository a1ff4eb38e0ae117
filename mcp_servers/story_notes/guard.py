"""Content checks and subtree collection used before deleting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import EMPTY_PLACEHOLDER
from .models import ItemKind, NoteItem

if TYPE_CHECKING:
    from .tree import TreeStore


def is_placeholder(content: str | None, placeholder: str = EMPTY_PLACEHOLDER) -> bool:
    """True when content is missing, blank, or the untouched placeholder."""
    if not content:
        return True
    stripped = content.strip()
    return stripped == "" or stripped == placeholder.strip()


def has_meaningful_content(
    tree: TreeStore, item: NoteItem, placeholder: str = EMPTY_PLACEHOLDER
) -> bool:
    """Return whether ``item`` or anything below it holds real writing.

    A file counts when its content is not the placeholder. A folder counts
    when any item below it counts; an empty folder never does. Walks the
    subtree with an explicit stack and stops at the first written file.
    """
    pending = [item]
    while pending:
        current = pending.pop()
        if current.kind == ItemKind.FILE:
            if not is_placeholder(current.content, placeholder):
                return True
        else:
            pending.extend(tree.list(current.id))
    return False


def collect_descendants(tree: TreeStore, item_id: str) -> set[str]:
    """Collect the ids of every item below ``item_id`` (not including it)."""
    found: set[str] = set()
    pending = [item_id]
    while pending:
        for child in tree.list(pending.pop()):
            if child.id not in found:
                found.add(child.id)
                pending.append(child.id)
    return found
