"""Tests for the Story Notes models, repositories and tree store."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

import pytest

from mcp_servers.story_notes import config
from mcp_servers.story_notes.config import EMPTY_PLACEHOLDER
from mcp_servers.story_notes.errors import (
    CycleError,
    ItemTypeError,
    NotFoundError,
    ReferentialError,
    ValidationError,
)
from mcp_servers.story_notes.models import (
    ItemKind,
    NoteFile,
    NoteFolder,
    NoteLink,
    NoteTreeSnapshot,
)
from mcp_servers.story_notes.storage import InMemoryRepository, JsonFileRepository
from mcp_servers.story_notes.tree import TreeStore

FROZEN = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture()
def store() -> TreeStore:
    return TreeStore()


@pytest.fixture()
def frozen_store() -> TreeStore:
    """A store whose clock never moves."""
    return TreeStore(clock=lambda: FROZEN)


# ===================================================================
# Models
# ===================================================================


class TestModels:
    def test_file_defaults(self) -> None:
        note = NoteFile(name="Ideias")
        assert note.id
        assert note.kind == ItemKind.FILE
        assert note.content == EMPTY_PLACEHOLDER
        assert note.links == []
        assert note.parent_id is None

    def test_file_default_content_follows_settings(self, monkeypatch) -> None:
        monkeypatch.setattr(config.settings, "empty_placeholder", "<p>Escreva aqui</p>")
        assert NoteFile(name="Ideias").content == "<p>Escreva aqui</p>"
        assert TreeStore().placeholder == "<p>Escreva aqui</p>"

    def test_snapshot_discriminates_on_kind(self) -> None:
        raw = {
            "items": [
                {"id": "1", "name": "Folder", "kind": "folder"},
                {"id": "2", "name": "File", "kind": "file", "parent_id": "1"},
            ]
        }
        snapshot = NoteTreeSnapshot.model_validate(raw)
        assert isinstance(snapshot.items[0], NoteFolder)
        assert isinstance(snapshot.items[1], NoteFile)

    def test_link_requires_entity_id(self) -> None:
        with pytest.raises(Exception):
            NoteLink(entity_id="", entity_type="character")


# ===================================================================
# TreeStore — create
# ===================================================================


class TestCreate:
    def test_create_root_folder(self, store: TreeStore) -> None:
        folder_id = store.create("Ideias Principais", ItemKind.FOLDER)
        folder = store.get(folder_id)
        assert folder.name == "Ideias Principais"
        assert folder.kind == ItemKind.FOLDER
        assert folder.parent_id is None
        assert store.count == 1

    def test_create_file_starts_with_placeholder(self, store: TreeStore) -> None:
        file_id = store.create("doc", "file")
        assert store.get(file_id).content == EMPTY_PLACEHOLDER

    def test_custom_placeholder(self) -> None:
        store = TreeStore(placeholder="<p></p>")
        file_id = store.create("doc", ItemKind.FILE)
        assert store.get(file_id).content == "<p></p>"

    def test_create_inside_folder(self, store: TreeStore) -> None:
        folder_id = store.create("A", ItemKind.FOLDER)
        file_id = store.create("doc", ItemKind.FILE, folder_id)
        assert store.get(file_id).parent_id == folder_id
        assert [i.id for i in store.list(folder_id)] == [file_id]

    def test_ids_are_fresh(self, store: TreeStore) -> None:
        seen: set[str] = set()
        for n in range(50):
            item_id = store.create(f"item {n}", ItemKind.FILE)
            assert item_id not in seen
            seen.add(item_id)
        assert store.count == 50

    def test_folders_and_files_share_id_space(self, store: TreeStore) -> None:
        folder_id = store.create("A", ItemKind.FOLDER)
        file_id = store.create("A", ItemKind.FILE)
        assert folder_id != file_id

    def test_duplicate_sibling_names_allowed(self, store: TreeStore) -> None:
        store.create("Same", ItemKind.FILE)
        store.create("Same", ItemKind.FILE)
        assert [i.name for i in store.list()] == ["Same", "Same"]

    @pytest.mark.parametrize("name", ["", "   ", "\n\t"])
    def test_blank_name_rejected(self, store: TreeStore, name: str) -> None:
        with pytest.raises(ValidationError):
            store.create(name, ItemKind.FILE)
        assert store.count == 0

    def test_blank_name_in_folder_leaves_store_unchanged(self, store: TreeStore) -> None:
        folder_id = store.create("A", ItemKind.FOLDER)
        with pytest.raises(ValidationError):
            store.create("", ItemKind.FILE, folder_id)
        assert store.count == 1
        assert store.list(folder_id) == []

    def test_missing_parent_rejected(self, store: TreeStore) -> None:
        with pytest.raises(ReferentialError):
            store.create("x", ItemKind.FILE, "does-not-exist")
        assert store.count == 0

    def test_file_parent_rejected(self, store: TreeStore) -> None:
        file_id = store.create("doc", ItemKind.FILE)
        with pytest.raises(ReferentialError, match="not a folder"):
            store.create("x", ItemKind.FILE, file_id)

    def test_unknown_kind_rejected(self, store: TreeStore) -> None:
        with pytest.raises(ValueError):
            store.create("x", "shortcut")


# ===================================================================
# TreeStore — rename / content / links
# ===================================================================


class TestRename:
    def test_rename_updates_name_and_timestamp(self, frozen_store: TreeStore) -> None:
        folder_id = frozen_store.create("A", ItemKind.FOLDER)
        file_id = frozen_store.create("old", ItemKind.FILE, folder_id)
        frozen_store.update_content(file_id, "hello")
        before = frozen_store.get(file_id)

        frozen_store.rename(file_id, "X")

        after = frozen_store.get(file_id)
        assert after.name == "X"
        assert after.updated_at > before.updated_at
        assert after.content == "hello"
        assert after.parent_id == folder_id
        assert after.created_at == before.created_at

    def test_rename_keeps_listing_position(self, store: TreeStore) -> None:
        first = store.create("first", ItemKind.FILE)
        second = store.create("second", ItemKind.FILE)
        store.rename(first, "renamed")
        assert [i.id for i in store.list()] == [first, second]

    def test_rename_missing(self, store: TreeStore) -> None:
        with pytest.raises(NotFoundError):
            store.rename("nope", "X")

    def test_rename_blank(self, store: TreeStore) -> None:
        folder_id = store.create("A", ItemKind.FOLDER)
        with pytest.raises(ValidationError):
            store.rename(folder_id, "  ")
        assert store.get(folder_id).name == "A"


class TestUpdateContent:
    def test_update_content(self, frozen_store: TreeStore) -> None:
        file_id = frozen_store.create("doc", ItemKind.FILE)
        before = frozen_store.get(file_id).updated_at
        updated = frozen_store.update_content(file_id, "<p>Capítulo 1</p>")
        assert updated.content == "<p>Capítulo 1</p>"
        assert updated.updated_at > before

    def test_folder_content_is_type_error(self, store: TreeStore) -> None:
        folder_id = store.create("A", ItemKind.FOLDER)
        with pytest.raises(ItemTypeError):
            store.update_content(folder_id, "text")
        with pytest.raises(TypeError):
            store.update_content(folder_id, "text")

    def test_missing_item(self, store: TreeStore) -> None:
        with pytest.raises(NotFoundError):
            store.update_content("nope", "text")


class TestLinks:
    def test_update_links_stored_as_given(self, store: TreeStore) -> None:
        file_id = store.create("doc", ItemKind.FILE)
        links = [
            NoteLink(entity_id="char-1", entity_type="character"),
            NoteLink(entity_id="item-1", entity_type="item"),
        ]
        store.update_links(file_id, links)
        assert [link.entity_id for link in store.get(file_id).links] == ["char-1", "item-1"]

    def test_add_and_remove_link(self, store: TreeStore) -> None:
        file_id = store.create("doc", ItemKind.FILE)
        link = NoteLink(entity_id="beast-1", entity_type="beast")
        store.add_link(file_id, link)
        assert len(store.get(file_id).links) == 1
        store.remove_link(file_id, link.id)
        assert store.get(file_id).links == []

    def test_remove_unknown_link(self, store: TreeStore) -> None:
        file_id = store.create("doc", ItemKind.FILE)
        with pytest.raises(NotFoundError, match="Link"):
            store.remove_link(file_id, "link-404")

    def test_links_on_folder_rejected(self, store: TreeStore) -> None:
        folder_id = store.create("A", ItemKind.FOLDER)
        with pytest.raises(ItemTypeError):
            store.update_links(folder_id, [])

    def test_linked_to(self, store: TreeStore) -> None:
        a = store.create("a", ItemKind.FILE)
        b = store.create("b", ItemKind.FILE)
        store.add_link(a, NoteLink(entity_id="char-1", entity_type="character"))
        store.add_link(b, NoteLink(entity_id="char-2", entity_type="character"))
        assert [f.id for f in store.linked_to("char-1")] == [a]
        assert store.linked_to("world-1") == []


# ===================================================================
# TreeStore — queries
# ===================================================================


class TestQueries:
    def test_list_root_and_children(self, store: TreeStore) -> None:
        a = store.create("A", ItemKind.FOLDER)
        b = store.create("B", ItemKind.FOLDER, a)
        doc = store.create("doc", ItemKind.FILE, b)
        assert [i.id for i in store.list()] == [a]
        assert [i.id for i in store.list(a)] == [b]
        assert [i.id for i in store.list(b)] == [doc]
        assert store.list(doc) == []

    def test_ancestor_chain(self, store: TreeStore) -> None:
        a = store.create("A", ItemKind.FOLDER)
        b = store.create("B", ItemKind.FOLDER, a)
        doc = store.create("doc", ItemKind.FILE, b)
        assert store.ancestor_chain(a) == [a]
        assert store.ancestor_chain(b) == [a, b]
        assert store.ancestor_chain(doc) == [a, b, doc]

    def test_ancestor_chain_missing(self, store: TreeStore) -> None:
        with pytest.raises(NotFoundError):
            store.ancestor_chain("nope")

    def test_search(self, store: TreeStore) -> None:
        folder = store.create("Sistema de Magia", ItemKind.FOLDER)
        doc = store.create("Elementos", ItemKind.FILE, folder)
        store.update_content(doc, "<p>Fogo, Água e Terra</p>")
        assert [i.id for i in store.search("magia")] == [folder]
        assert [i.id for i in store.search("ÁGUA")] == [doc]
        assert store.search("xyz") == []

    def test_contains_and_len(self, store: TreeStore) -> None:
        item_id = store.create("A", ItemKind.FOLDER)
        assert item_id in store
        assert "nope" not in store
        assert len(store) == 1


# ===================================================================
# Repositories
# ===================================================================


class FailingRepository(InMemoryRepository):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def save(self, items) -> None:
        if self.fail:
            raise OSError("disk full")
        super().save(items)


class TestRepositories:
    def test_in_memory_repository_receives_every_mutation(self) -> None:
        repo = InMemoryRepository()
        store = TreeStore(repo)
        store.create("A", ItemKind.FOLDER)
        assert [i.name for i in repo.load()] == ["A"]

    def test_json_persistence(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.json"
        s1 = TreeStore(JsonFileRepository(path))
        folder_id = s1.create("Notas Gerais", ItemKind.FOLDER)
        file_id = s1.create("Sistema de Magia", ItemKind.FILE, folder_id)
        s1.update_content(file_id, "<h1>Magia</h1>")
        s1.add_link(file_id, NoteLink(entity_id="world-1", entity_type="world"))

        s2 = TreeStore(JsonFileRepository(path))
        assert s2.count == 2
        restored = s2.get(file_id)
        assert restored.content == "<h1>Magia</h1>"
        assert restored.parent_id == folder_id
        assert restored.links[0].entity_id == "world-1"

    def test_empty_file_created(self, tmp_path: Path) -> None:
        path = tmp_path / "new.json"
        assert not path.exists()
        TreeStore(JsonFileRepository(path))
        assert path.exists()
        data = json.loads(path.read_text())
        assert data["items"] == []

    def test_no_temp_file_left_behind(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.json"
        TreeStore(JsonFileRepository(path)).create("A", ItemKind.FOLDER)
        assert [p.name for p in tmp_path.iterdir()] == ["notes.json"]

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(Exception):
            TreeStore(JsonFileRepository(path))

    def test_cycle_rejected_on_load(self) -> None:
        repo = InMemoryRepository(
            [
                NoteFolder(id="a", name="A", parent_id="b"),
                NoteFolder(id="b", name="B", parent_id="a"),
            ]
        )
        with pytest.raises(CycleError):
            TreeStore(repo)

    def test_dangling_parent_rejected_on_load(self) -> None:
        repo = InMemoryRepository([NoteFile(id="x", name="x", parent_id="ghost")])
        with pytest.raises(ReferentialError):
            TreeStore(repo)

    def test_file_parent_rejected_on_load(self) -> None:
        repo = InMemoryRepository(
            [NoteFile(id="f", name="f"), NoteFile(id="g", name="g", parent_id="f")]
        )
        with pytest.raises(ReferentialError):
            TreeStore(repo)

    def test_duplicate_ids_rejected_on_load(self) -> None:
        repo = InMemoryRepository(
            [NoteFolder(id="same", name="A"), NoteFile(id="same", name="B")]
        )
        with pytest.raises(ReferentialError, match="Duplicate"):
            TreeStore(repo)

    def test_failed_save_rolls_back(self) -> None:
        repo = FailingRepository()
        store = TreeStore(repo)
        folder_id = store.create("A", ItemKind.FOLDER)
        repo.fail = True

        with pytest.raises(OSError):
            store.create("B", ItemKind.FILE, folder_id)
        with pytest.raises(OSError):
            store.rename(folder_id, "renamed")

        assert store.count == 1
        assert store.get(folder_id).name == "A"
        assert store.list(folder_id) == []

    def test_failed_delete_rolls_back(self) -> None:
        repo = FailingRepository()
        store = TreeStore(repo)
        first = store.create("first", ItemKind.FILE)
        folder_id = store.create("A", ItemKind.FOLDER)
        inner = store.create("inner", ItemKind.FOLDER, folder_id)
        doc = store.create("doc", ItemKind.FILE, inner)
        last = store.create("last", ItemKind.FILE)
        repo.fail = True

        with pytest.raises(OSError):
            store.delete(folder_id)

        assert store.count == 5
        assert [i.id for i in store.list()] == [first, folder_id, last]
        assert [i.id for i in store.list(folder_id)] == [inner]
        assert [i.id for i in store.list(inner)] == [doc]

    def test_in_memory_repository_shares_items(self) -> None:
        repo = InMemoryRepository()
        store = TreeStore(repo)
        folder_id = store.create("A", ItemKind.FOLDER)
        assert repo.load()[0] is store.get(folder_id)
        assert repo.load() is not repo.load()

    def test_many_items_in_one_folder(self) -> None:
        repo = InMemoryRepository()
        store = TreeStore(repo)
        ids = [store.create(f"note {n}", ItemKind.FILE) for n in range(3000)]
        assert store.count == 3000
        assert [i.id for i in store.list()] == ids
        assert len(repo.load()) == 3000

    def test_deep_chain_loads(self) -> None:
        depth = 1500
        items = [NoteFolder(id="0", name="level 0")]
        items += [
            NoteFolder(id=str(n), name=f"level {n}", parent_id=str(n - 1))
            for n in range(1, depth)
        ]
        store = TreeStore(InMemoryRepository(list(reversed(items))))
        assert store.count == depth
        assert len(store.ancestor_chain(str(depth - 1))) == depth

    def test_cycle_behind_long_chain_rejected(self) -> None:
        items = [
            NoteFolder(id=f"tail-{n}", name="tail", parent_id=f"tail-{n + 1}" if n < 199 else "a")
            for n in range(200)
        ]
        items += [
            NoteFolder(id="a", name="A", parent_id="c"),
            NoteFolder(id="b", name="B", parent_id="a"),
            NoteFolder(id="c", name="C", parent_id="b"),
        ]
        with pytest.raises(CycleError):
            TreeStore(InMemoryRepository(items))

    def test_missing_content_uses_configured_placeholder(
        self, tmp_path: Path, monkeypatch
    ) -> None:
        monkeypatch.setattr(config.settings, "empty_placeholder", "<p>Escreva aqui</p>")
        path = tmp_path / "notes.json"
        path.write_text(
            json.dumps({"items": [{"id": "f", "name": "Ideias", "kind": "file"}]}),
            encoding="utf-8",
        )
        store = TreeStore(JsonFileRepository(path))
        assert store.get("f").content == "<p>Escreva aqui</p>"
        assert store.delete("f") == frozenset({"f"})

    def test_undecodable_file_logged_and_raised(self, tmp_path: Path, caplog) -> None:
        path = tmp_path / "notes.json"
        path.write_bytes(b'{"items": ["\xff\xfe"]}')
        with caplog.at_level(logging.ERROR, logger="story_notes.storage"):
            with pytest.raises(UnicodeDecodeError):
                TreeStore(JsonFileRepository(path))
        assert any(
            r.levelno == logging.ERROR and "Failed to load notes" in r.getMessage()
            for r in caplog.records
        )
