"""
Typed failures raised by the catalog and inventory layers.

Every failure carries the values needed to explain it, so the transport layer
can render a response without parsing messages.
"""

from typing import Any, Optional


class BookstoreError(Exception):
    """Base class for all domain failures."""


class NotFound(BookstoreError):
    """Referenced record does not exist."""

    def __init__(self, resource_type: str, identifier: Any):
        super().__init__(f"{resource_type} not found with identifier: {identifier}")
        self.resource_type = resource_type
        self.identifier = identifier


class InsufficientInventory(BookstoreError):
    """A reservation asked for more than is available. Nothing was written."""

    def __init__(self, book_id: str, requested: int, available: int):
        super().__init__(
            f"Insufficient inventory for book {book_id}. "
            f"Requested: {requested}, Available: {available}"
        )
        self.book_id = book_id
        self.requested = requested
        self.available = available


class InvalidAdjustment(BookstoreError):
    """An adjustment would drive stock below zero. Nothing was written."""

    def __init__(self, book_id: str, current_quantity: int, adjustment: int):
        super().__init__(
            f"Inventory adjustment would result in negative stock for book {book_id}"
        )
        self.book_id = book_id
        self.current_quantity = current_quantity
        self.adjustment = adjustment


class ConcurrencyConflict(BookstoreError):
    """
    The stored version moved between read and write.

    The losing writer wrote nothing. Callers may reload and resubmit.
    """

    def __init__(self, book_id: str, expected_version: int, current_version: Optional[int] = None):
        super().__init__(
            f"Book {book_id} was modified concurrently "
            f"(expected version {expected_version}, found {current_version})"
        )
        self.book_id = book_id
        self.expected_version = expected_version
        self.current_version = current_version


class InvalidArgument(BookstoreError):
    """An argument is below its required minimum or otherwise malformed."""


class InvalidSortParameter(InvalidArgument):
    """Sort expression is not `field,direction` over an allowed field."""


class DuplicateResource(BookstoreError):
    """A unique attribute (ISBN) is already taken."""


class IdMismatch(BookstoreError):
    """Identifier in the path differs from the one in the body."""

    def __init__(self, path_id: str, body_id: str):
        super().__init__(f"Path ID {path_id} does not match body ID {body_id}")
        self.path_id = path_id
        self.body_id = body_id
