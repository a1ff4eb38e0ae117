"""In-memory tree of note folders and files."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from . import config
from .deletion import ConfirmDeletion, DeletionProtocol
from .errors import (
    CycleError,
    ItemTypeError,
    NotFoundError,
    ReferentialError,
    ValidationError,
)
from .models import ItemKind, NoteFile, NoteFolder, NoteItem, NoteLink
from .storage import InMemoryRepository, NoteRepository

logger = logging.getLogger("story_notes.tree")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TreeStore:
    """Owns every note item, keyed by id.

    Items are kept in insertion order with a parent -> children index
    beside them. The root level is indexed under ``None``. Every mutation
    is saved through the repository; if saving fails the previous state
    is restored before the error propagates.
    """

    def __init__(
        self,
        repository: NoteRepository | None = None,
        *,
        placeholder: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository if repository is not None else InMemoryRepository()
        self.placeholder = (
            placeholder if placeholder is not None else config.settings.empty_placeholder
        )
        self._clock = clock
        self._items: dict[str, NoteItem] = {}
        self._children: dict[str | None, list[str]] = {}
        self._load(self._repository.load())

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, items: Iterable[NoteItem]) -> None:
        loaded: dict[str, NoteItem] = {}
        for item in items:
            if item.id in loaded:
                raise ReferentialError(item.id, f"Duplicate item id '{item.id}'")
            loaded[item.id] = item

        for item in loaded.values():
            if item.parent_id is None:
                continue
            parent = loaded.get(item.parent_id)
            if parent is None or parent.kind != ItemKind.FOLDER:
                raise ReferentialError(
                    item.id,
                    f"Item '{item.id}' has parent '{item.parent_id}' which is not a folder",
                )

        verified: set[str] = set()
        for item_id in loaded:
            chain = [item_id]
            on_chain = {item_id}
            parent_id = loaded[item_id].parent_id
            while parent_id is not None and parent_id not in verified:
                if parent_id in on_chain:
                    raise CycleError(item_id, chain + [parent_id])
                chain.append(parent_id)
                on_chain.add(parent_id)
                parent_id = loaded[parent_id].parent_id
            verified.update(on_chain)

        self._items = loaded
        self._reindex()
        logger.info("Tree loaded with %d items", len(self._items))

    def _reindex(self) -> None:
        self._children = {}
        for item in self._items.values():
            self._children.setdefault(item.parent_id, []).append(item.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, item_id: str) -> NoteItem:
        """Return the item with ``item_id``.

        Raises:
            NotFoundError: If no such item exists.
        """
        try:
            return self._items[item_id]
        except KeyError:
            raise NotFoundError(item_id) from None

    def list(self, parent_id: str | None = None) -> list[NoteItem]:
        """Return the items directly inside ``parent_id`` (root when None).

        Order follows insertion and is not a guarantee; sort explicitly
        when presentation needs it.
        """
        return [self._items[i] for i in self._children.get(parent_id, [])]

    def all(self) -> list[NoteItem]:
        return list(self._items.values())

    def ancestor_chain(self, item_id: str) -> list[str]:
        """Ids from the root-most ancestor down to ``item_id`` inclusive."""
        chain = [self.get(item_id).id]
        parent_id = self._items[item_id].parent_id
        while parent_id is not None:
            chain.append(parent_id)
            parent_id = self._items[parent_id].parent_id
        chain.reverse()
        return chain

    def search(self, query: str) -> list[NoteItem]:
        """Return items whose name or file content contains the query (case-insensitive)."""
        q = query.lower()
        return [
            item
            for item in self._items.values()
            if q in item.name.lower()
            or (item.kind == ItemKind.FILE and q in item.content.lower())
        ]

    def linked_to(self, entity_id: str) -> list[NoteFile]:
        """Return the files that link to ``entity_id``."""
        return [
            item
            for item in self._items.values()
            if item.kind == ItemKind.FILE
            and any(link.entity_id == entity_id for link in item.links)
        ]

    @property
    def count(self) -> int:
        """Number of stored items."""
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self, name: str, kind: ItemKind | str, parent_id: str | None = None
    ) -> str:
        """Create a folder or file and return its new id.

        Raises:
            ValidationError: If ``name`` is blank. No id is consumed.
            ReferentialError: If ``parent_id`` is not an existing folder.
        """
        kind = ItemKind(kind)
        self._check_name(name)
        if parent_id is not None:
            parent = self._items.get(parent_id)
            if parent is None:
                raise ReferentialError(parent_id, f"Parent folder '{parent_id}' does not exist")
            if parent.kind != ItemKind.FOLDER:
                raise ReferentialError(parent_id, f"Parent '{parent_id}' is a file, not a folder")

        item_id = self._mint_id()
        now = self._clock()
        if kind is ItemKind.FOLDER:
            item: NoteItem = NoteFolder(
                id=item_id, name=name, parent_id=parent_id, created_at=now, updated_at=now
            )
        else:
            item = NoteFile(
                id=item_id,
                name=name,
                parent_id=parent_id,
                content=self.placeholder,
                created_at=now,
                updated_at=now,
            )

        with self._transaction({item_id}, {parent_id}):
            self._items[item_id] = item
            self._children.setdefault(parent_id, []).append(item_id)
        logger.info("Created %s %s — '%s'", kind.value, item_id, name)
        return item_id

    def rename(self, item_id: str, new_name: str) -> NoteItem:
        """Rename an item and bump its ``updated_at``."""
        item = self.get(item_id)
        self._check_name(new_name)
        updated = item.model_copy(
            update={"name": new_name, "updated_at": self._next_timestamp(item)}
        )
        self._replace(updated)
        logger.info("Renamed %s to '%s'", item_id, new_name)
        return updated

    def update_content(self, item_id: str, content: str) -> NoteFile:
        """Replace a file's content."""
        item = self._get_file(item_id)
        updated = item.model_copy(
            update={"content": content, "updated_at": self._next_timestamp(item)}
        )
        self._replace(updated)
        logger.info("Updated content of %s (%d chars)", item_id, len(content))
        return updated

    def update_links(self, item_id: str, links: Iterable[NoteLink]) -> NoteFile:
        """Replace a file's entity links; records are stored as given."""
        item = self._get_file(item_id)
        updated = item.model_copy(
            update={"links": list(links), "updated_at": self._next_timestamp(item)}
        )
        self._replace(updated)
        logger.info("Updated links of %s (%d links)", item_id, len(updated.links))
        return updated

    def add_link(self, item_id: str, link: NoteLink) -> NoteFile:
        return self.update_links(item_id, [*self._get_file(item_id).links, link])

    def remove_link(self, item_id: str, link_id: str) -> NoteFile:
        links = self._get_file(item_id).links
        remaining = [link for link in links if link.id != link_id]
        if len(remaining) == len(links):
            raise NotFoundError(link_id, what="Link")
        return self.update_links(item_id, remaining)

    def delete(self, item_id: str, confirm: ConfirmDeletion | None = None) -> frozenset[str]:
        """Delete an item and, for folders, everything below it.

        Items holding meaningful content are only deleted when ``confirm``
        approves. Returns the removed ids, empty when cancelled.

        Raises:
            NotFoundError: If the item does not exist.
        """
        return DeletionProtocol(self).run(item_id, confirm)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _remove_items(self, ids: set[str]) -> None:
        """Drop ``ids`` in one step. Callers must pass a closed subtree."""
        parents = {self._items[item_id].parent_id for item_id in ids}
        with self._transaction(ids, parents | ids):
            for item_id in ids:
                del self._items[item_id]
                self._children.pop(item_id, None)
            for parent_id in parents - ids:
                self._children[parent_id] = [
                    child for child in self._children[parent_id] if child not in ids
                ]
        logger.info("Removed %d items", len(ids))

    def _replace(self, item: NoteItem) -> None:
        with self._transaction({item.id}):
            self._items[item.id] = item

    def _transaction(
        self, item_ids: Iterable[str], parent_ids: Iterable[str | None] = ()
    ) -> _Transaction:
        return _Transaction(self, item_ids, parent_ids)

    def _get_file(self, item_id: str) -> NoteFile:
        item = self.get(item_id)
        if item.kind != ItemKind.FILE:
            raise ItemTypeError(item_id, expected="file", actual=item.kind)
        return item

    def _mint_id(self) -> str:
        item_id = str(uuid4())
        while item_id in self._items:
            item_id = str(uuid4())
        return item_id

    def _next_timestamp(self, item: NoteItem) -> datetime:
        now = self._clock()
        if now <= item.updated_at:
            now = item.updated_at + timedelta(microseconds=1)
        return now

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or not name.strip():
            raise ValidationError("name", "must not be empty")


class _Transaction:
    """Saves the store on exit, restoring the touched entries on failure.

    Only the items in ``item_ids`` and the child lists in ``parent_ids``
    are snapshotted; the mutation must not touch anything else.
    """

    def __init__(
        self,
        tree: TreeStore,
        item_ids: Iterable[str],
        parent_ids: Iterable[str | None] = (),
    ) -> None:
        self._tree = tree
        self._item_ids = list(item_ids)
        self._parent_ids = list(parent_ids)

    def __enter__(self) -> None:
        items = self._tree._items
        children = self._tree._children
        self._items = {i: items.get(i) for i in self._item_ids}
        self._children = {
            p: list(children[p]) if p in children else None for p in self._parent_ids
        }

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                self._tree._repository.save(list(self._tree._items.values()))
                return False
            except Exception:
                self._rollback()
                raise
        self._rollback()
        return False

    def _rollback(self) -> None:
        items = self._tree._items
        children = self._tree._children
        for item_id, item in self._items.items():
            if item is None:
                items.pop(item_id, None)
            else:
                items[item_id] = item
        for parent_id, child_ids in self._children.items():
            if child_ids is None:
                children.pop(parent_id, None)
            else:
                children[parent_id] = child_ids
