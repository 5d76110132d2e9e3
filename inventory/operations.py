"""
Stock rules for a single book record.

Every rule takes a snapshot and returns a new snapshot; the input is never
modified. Rules do no I/O, so they can be applied inside a versioned
read-modify-write without holding anything open.
"""

from catalog.exceptions import InsufficientInventory, InvalidAdjustment, InvalidArgument
from catalog.models import BookRecord


def require_positive(name: str, value: int) -> None:
    if value < 1:
        raise InvalidArgument(f"{name} must be at least 1, got {value}")


def require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise InvalidArgument(f"{name} must be zero or positive, got {value}")


def reserve(record: BookRecord, quantity: int) -> BookRecord:
    """
    Earmark `quantity` units for a pending order.

    Raises:
        InvalidArgument: quantity below 1
        InsufficientInventory: fewer than `quantity` units are available
    """
    require_positive("quantity", quantity)

    available = record.quantity_in_stock - record.reserved_quantity
    if available < quantity:
        raise InsufficientInventory(record.id, quantity, record.available_quantity())

    return record.model_copy(update={"reserved_quantity": record.reserved_quantity + quantity})


def release(record: BookRecord, quantity: int) -> BookRecord:
    """
    Give back up to `quantity` reserved units.

    Releasing more than is reserved releases everything; it is not an error.
    """
    require_positive("quantity", quantity)
    return record.model_copy(update={"reserved_quantity": max(0, record.reserved_quantity - quantity)})


def adjust(record: BookRecord, delta: int) -> BookRecord:
    """
    Apply a signed change to physical stock.

    The reserved quantity is left alone even if it ends up above the new
    stock level; `available_quantity()` floors at zero in that case.

    Raises:
        InvalidAdjustment: the change would take stock below zero
    """
    new_quantity = record.quantity_in_stock + delta
    if new_quantity < 0:
        raise InvalidAdjustment(record.id, record.quantity_in_stock, delta)

    return record.model_copy(update={"quantity_in_stock": new_quantity})


def set_reorder_level(record: BookRecord, level: int) -> BookRecord:
    require_non_negative("reorder level", level)
    return record.model_copy(update={"reorder_level": level})
