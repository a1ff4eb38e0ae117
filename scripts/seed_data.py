"""Seed a Story Notes JSON store with a small sample notebook.

Creates two folders, each holding one written file, so the notes view
has something to browse and the delete confirmation can be tried out.

Usage:
    python scripts/seed_data.py [--path notes_data.json] [--force]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from mcp_servers.story_notes.models import ItemKind
from mcp_servers.story_notes.storage import JsonFileRepository
from mcp_servers.story_notes.tree import TreeStore

DEFAULT_PATH = Path("notes_data.json")


# Each entry: (folder name, [(file name, content), ...])
SAMPLE_NOTEBOOK: list[tuple[str, list[tuple[str, str]]]] = [
    (
        "Ideias Principais",
        [
            (
                "Personagens Secundários",
                "<h1>Personagens Secundários</h1><h2>Elena Thornfield</h2>"
                "<p><em>Comerciante de especiarias</em></p>"
                "<blockquote>\"O segredo dos negócios é saber quando dobrar a "
                "aposta.\"</blockquote><p>Personagem importante para o "
                "desenvolvimento do mercado negro.</p>",
            ),
        ],
    ),
    (
        "Notas Gerais",
        [
            (
                "Sistema de Magia",
                "<h1>Sistema de Magia</h1><p>O sistema de magia é baseado em "
                "<em>elementos naturais</em>.</p><h2>Elementos Principais:</h2>"
                "<div>• <strong>Fogo</strong>: Destruição e energia</div>"
                "<div>• <strong>Água</strong>: Cura e fluidez</div>"
                "<div>• <strong>Terra</strong>: Proteção e estabilidade</div>",
            ),
        ],
    ),
]


def seed(path: Path, force: bool = False) -> TreeStore:
    """Write the sample notebook to ``path`` and return the populated store.

    Raises:
        FileExistsError: If the store already holds items and ``force`` is off.
    """
    store = TreeStore(JsonFileRepository(path))
    if store.count and not force:
        raise FileExistsError(f"{path} already holds {store.count} items")
    for item in store.list():
        store.delete(item.id, confirm=lambda name, kind: True)

    for folder_name, files in SAMPLE_NOTEBOOK:
        folder_id = store.create(folder_name, ItemKind.FOLDER)
        for file_name, content in files:
            file_id = store.create(file_name, ItemKind.FILE, folder_id)
            store.update_content(file_id, content)
    return store


def main() -> None:
    """Seed the notebook file named on the command line."""
    parser = argparse.ArgumentParser(description="Seed a sample notebook")
    parser.add_argument(
        "--path",
        type=Path,
        default=DEFAULT_PATH,
        help=f"JSON store to write (default: {DEFAULT_PATH})",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Replace an existing non-empty store",
    )
    args = parser.parse_args()

    print(f"\n  Seeding notebook at {args.path}")
    try:
        store = seed(args.path, force=args.force)
    except FileExistsError as e:
        print(f"  FAIL: {e}. Use --force to replace it.")
        sys.exit(1)

    for folder in store.list():
        print(f"  {folder.name}/")
        for item in store.list(folder.id):
            print(f"    {item.name}")
    print(f"\n  Done! {store.count} items written.\n")


if __name__ == "__main__":
    main()
