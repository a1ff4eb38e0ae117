"""
Story Notes MCP Server

Exposes the writer's note tree (folders, files, navigation and guarded
deletion) via the Model Context Protocol.  Runs on port 8001 with SSE
transport.
"""

import logging
from datetime import UTC, datetime

from mcp.server.fastmcp import FastMCP
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import ValidationError as SchemaError
from starlette.requests import Request
from starlette.responses import Response

from .config import settings
from .deletion import DeleteState
from .errors import NoteTreeError
from .metrics import CASCADE_SIZE, NOTE_ITEMS, NOTE_OPERATIONS
from .models import ItemKind, NoteItem, NoteLink
from .session import NotebookSession

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("story_notes")

# ---------------------------------------------------------------------------
# MCP server + session
# ---------------------------------------------------------------------------
mcp = FastMCP("story-notes", host=settings.host, port=settings.port)
_session: NotebookSession | None = None


def get_session() -> NotebookSession:
    """Return the process-wide session, opening it on first use."""
    global _session
    if _session is None:
        _session = NotebookSession.open(settings)
    return _session


def set_session(session: NotebookSession | None) -> None:
    """Replace the process-wide session, closing the previous one."""
    global _session
    if _session is not None:
        _session.close()
    _session = session


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def _dump(item: NoteItem) -> dict:
    return item.model_dump(mode="json")


def _success(operation: str, **payload) -> dict:
    NOTE_OPERATIONS.labels(operation=operation, status="success").inc()
    store = get_session().store
    for kind in ItemKind:
        NOTE_ITEMS.labels(kind=kind.value).set(
            sum(1 for item in store.all() if item.kind == kind)
        )
    return {**payload, "status": "success"}


def _error(operation: str, exc: Exception) -> dict:
    NOTE_OPERATIONS.labels(operation=operation, status="error").inc()
    logger.warning("Tool %s failed — %s: %s", operation, type(exc).__name__, exc)
    return {
        "error": str(exc),
        "error_type": type(exc).__name__,
        "status": "error",
    }


def _create(operation: str, name: str, kind: ItemKind) -> dict:
    session = get_session()
    try:
        item_id = session.store.create(name, kind, session.cursor.current_folder())
    except NoteTreeError as e:
        return _error(operation, e)
    item = session.store.get(item_id)
    return _success(
        operation,
        item=_dump(item),
        message=f"{kind.value.capitalize()} '{item.name}' created successfully.",
    )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
def create_folder(name: str) -> dict:
    """Create a folder inside the folder currently open.

    Args:
        name: Display name of the new folder; must not be blank.

    Returns:
        Dictionary with the created folder and a confirmation message.
    """
    logger.info("Tool create_folder invoked — name='%s'", name)
    return _create("create_folder", name, ItemKind.FOLDER)


@mcp.tool()
def create_file(name: str) -> dict:
    """Create an empty note file inside the folder currently open.

    The file starts with placeholder content until it is written to.

    Args:
        name: Display name of the new file; must not be blank.

    Returns:
        Dictionary with the created file and a confirmation message.
    """
    logger.info("Tool create_file invoked — name='%s'", name)
    return _create("create_file", name, ItemKind.FILE)


@mcp.tool()
def rename_item(item_id: str, name: str) -> dict:
    """Rename a folder or file.

    Args:
        item_id: Id of the item to rename.
        name: New display name; must not be blank.

    Returns:
        Dictionary with the renamed item.
    """
    logger.info("Tool rename_item invoked — id=%s", item_id)
    try:
        item = get_session().store.rename(item_id, name)
    except NoteTreeError as e:
        return _error("rename_item", e)
    return _success("rename_item", item=_dump(item))


@mcp.tool()
def update_content(item_id: str, content: str) -> dict:
    """Replace the rich-text content of a file.

    Args:
        item_id: Id of the file.
        content: Serialized rich text produced by the editor.

    Returns:
        Dictionary with the updated file.
    """
    logger.info("Tool update_content invoked — id=%s", item_id)
    try:
        item = get_session().store.update_content(item_id, content)
    except NoteTreeError as e:
        return _error("update_content", e)
    return _success("update_content", item=_dump(item))


@mcp.tool()
def update_links(item_id: str, links: list[dict]) -> dict:
    """Replace the entity links attached to a file.

    Args:
        item_id: Id of the file.
        links: Link records with ``entity_id`` and ``entity_type``.

    Returns:
        Dictionary with the updated file.
    """
    logger.info("Tool update_links invoked — id=%s, links=%d", item_id, len(links))
    try:
        parsed = [NoteLink.model_validate(link) for link in links]
        item = get_session().store.update_links(item_id, parsed)
    except (NoteTreeError, SchemaError) as e:
        return _error("update_links", e)
    return _success("update_links", item=_dump(item))


@mcp.tool()
def list_items() -> dict:
    """List the folders and files in the folder currently open.

    Returns:
        Dictionary with the breadcrumb path, the items and their count.
    """
    session = get_session()
    items = session.cursor.items()
    logger.info("Tool list_items invoked — found=%d", len(items))
    return _success(
        "list_items",
        path=session.breadcrumb(),
        count=len(items),
        items=[_dump(item) for item in items],
    )


@mcp.tool()
def open_folder(folder_id: str) -> dict:
    """Open a folder listed in the current view.

    Args:
        folder_id: Id of a folder inside the folder currently open.

    Returns:
        Dictionary with the new breadcrumb path.
    """
    logger.info("Tool open_folder invoked — id=%s", folder_id)
    session = get_session()
    try:
        session.cursor.enter(folder_id)
    except NoteTreeError as e:
        return _error("open_folder", e)
    return _success("open_folder", path=session.breadcrumb())


@mcp.tool()
def go_back() -> dict:
    """Go up one folder; stays put at the root.

    Returns:
        Dictionary with the new breadcrumb path.
    """
    logger.info("Tool go_back invoked")
    session = get_session()
    session.cursor.back()
    return _success("go_back", path=session.breadcrumb())


@mcp.tool()
def breadcrumb() -> dict:
    """Return the path from the root to the folder currently open."""
    return _success("breadcrumb", path=get_session().breadcrumb())


@mcp.tool()
def request_delete(item_id: str) -> dict:
    """Delete a folder or file, asking for confirmation when it holds writing.

    Items without meaningful content (and folders containing none) are
    deleted immediately. Otherwise the deletion waits for confirm_delete
    or cancel_delete.

    Args:
        item_id: Id of the item to delete.

    Returns:
        Dictionary with the deletion state and, when executed, the removed ids.
    """
    logger.info("Tool request_delete invoked — id=%s", item_id)
    try:
        protocol = get_session().request_delete(item_id)
    except NoteTreeError as e:
        return _error("request_delete", e)
    if protocol.state is DeleteState.PENDING_CONFIRMATION:
        target = protocol.target
        return _success(
            "request_delete",
            state=protocol.state.value,
            requires_confirmation=True,
            target={"id": target.id, "name": target.name, "kind": target.kind},
        )
    CASCADE_SIZE.observe(len(protocol.removed))
    return _success(
        "request_delete",
        state=protocol.state.value,
        requires_confirmation=False,
        removed=sorted(protocol.removed),
    )


@mcp.tool()
def confirm_delete() -> dict:
    """Confirm the pending deletion and remove the item with its contents."""
    logger.info("Tool confirm_delete invoked")
    try:
        removed = get_session().confirm_delete()
    except NoteTreeError as e:
        return _error("confirm_delete", e)
    CASCADE_SIZE.observe(len(removed))
    return _success(
        "confirm_delete",
        state=DeleteState.EXECUTED.value,
        removed=sorted(removed),
        message=f"{len(removed)} item(s) deleted.",
    )


@mcp.tool()
def cancel_delete() -> dict:
    """Cancel the pending deletion; nothing is removed."""
    logger.info("Tool cancel_delete invoked")
    try:
        get_session().cancel_delete()
    except NoteTreeError as e:
        return _error("cancel_delete", e)
    return _success("cancel_delete", state=DeleteState.IDLE.value)


@mcp.tool()
def search_notes(query: str) -> dict:
    """Search folders and files by keyword (names and file content).

    Args:
        query: Case-insensitive substring to look for.

    Returns:
        Dictionary with matching items and their count.
    """
    results = get_session().store.search(query)
    logger.info("Tool search_notes invoked — query='%s', found=%d", query, len(results))
    return _success(
        "search_notes",
        count=len(results),
        items=[_dump(item) for item in results],
    )


@mcp.tool()
def linked_notes(entity_id: str) -> dict:
    """List the files linked to a character, beast, place or item.

    Args:
        entity_id: Id of the linked entity.

    Returns:
        Dictionary with the linked files and their count.
    """
    files = get_session().store.linked_to(entity_id)
    logger.info("Tool linked_notes invoked — entity=%s, found=%d", entity_id, len(files))
    return _success(
        "linked_notes",
        count=len(files),
        items=[_dump(item) for item in files],
    )


@mcp.tool()
def health_check() -> dict:
    """Check whether the Story Notes server is healthy.

    Returns:
        Dictionary with server status, item count, and timestamp.
    """
    logger.info("Tool health_check invoked")
    return {
        "status": "healthy",
        "server": "story-notes",
        "total_items": get_session().store.count,
        "timestamp": datetime.now(UTC).isoformat(),
    }


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@mcp.custom_route("/metrics", methods=["GET"])
async def metrics(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    logger.info("Starting Story Notes MCP server on port %d ...", settings.port)
    mcp.run(transport="sse")
