"""Error hierarchy for the note tree.

Library code raises these; the MCP tool layer turns them into
``{"status": "error", ...}`` dictionaries.
"""


class NoteTreeError(Exception):
    """Base error for every note tree operation."""


class ValidationError(NoteTreeError):
    """A name is empty or whitespace-only."""

    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        self.detail = detail
        super().__init__(f"Invalid {field}: {detail}")


class ReferentialError(NoteTreeError):
    """A parent reference does not resolve to an existing folder."""

    def __init__(self, item_id: str | None, detail: str) -> None:
        self.item_id = item_id
        self.detail = detail
        super().__init__(detail)


class CycleError(ReferentialError):
    """The parent relation would contain a cycle."""

    def __init__(self, item_id: str, chain: list[str]) -> None:
        self.chain = chain
        super().__init__(
            item_id, f"Item '{item_id}' is its own ancestor: {' -> '.join(chain)}"
        )


class NotFoundError(NoteTreeError):
    """No item (or link) with the given id exists."""

    def __init__(self, item_id: str, what: str = "Item") -> None:
        self.item_id = item_id
        self.what = what
        super().__init__(f"{what} '{item_id}' not found")


class ItemTypeError(NoteTreeError, TypeError):
    """A file-only operation was attempted on a folder, or vice versa."""

    def __init__(self, item_id: str, expected: str, actual: str) -> None:
        self.item_id = item_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Item '{item_id}' is a {actual}, expected a {expected}")


class DeletionStateError(NoteTreeError):
    """A deletion protocol step was called in the wrong state."""

    def __init__(self, state: str, action: str) -> None:
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} while deletion is {state}")
