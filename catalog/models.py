"""
Pydantic models for the book catalog.
Implements the Book Record with its stock fields, version token and derived
inventory views, plus the inputs accepted by the catalog service.
"""

import math
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_REORDER_LEVEL = 5

# Fields rewritten on every versioned commit. `id`, `created_at`, `view_count`
# and `version` itself are never part of the $set.
MUTABLE_FIELDS = (
    "title",
    "price",
    "published_year",
    "isbn",
    "cost_price",
    "supplier_info",
    "authors",
    "genres",
    "quantity_in_stock",
    "reserved_quantity",
    "reorder_level",
)


def new_id() -> str:
    return str(uuid.uuid4())


def _money(value: Optional[Any]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Invalid monetary amount: {value!r}")


class NamedRef(BaseModel):
    """Reference to an author or genre embedded in a book document."""
    id: str = Field(..., description="Author or genre identifier")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")


class NamedRefInput(BaseModel):
    """Author or genre given either by id or by name."""
    id: Optional[str] = Field(None, description="Existing identifier")
    name: Optional[str] = Field(None, max_length=255, description="Name, created if unknown")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if v is not None else v


class BookRecord(BaseModel):
    """
    A stored book with its stock position.

    `available_quantity()` is derived from `quantity_in_stock` and
    `reserved_quantity` and is never stored. `version` is the optimistic
    concurrency token: it goes up by exactly one on every committed write.
    """
    id: str = Field(default_factory=new_id, description="Unique book identifier")
    title: str = Field(..., min_length=1, max_length=500, description="Book title")
    price: Decimal = Field(..., ge=0, description="Selling price")
    published_year: Optional[int] = Field(None, ge=1450, le=2100, description="Year of publication")
    isbn: Optional[str] = Field(None, max_length=20, description="ISBN")
    cost_price: Optional[Decimal] = Field(None, ge=0, description="Purchase cost")
    supplier_info: Optional[str] = Field(None, max_length=500, description="Supplier details")
    authors: List[NamedRef] = Field(default_factory=list)
    genres: List[NamedRef] = Field(default_factory=list)

    quantity_in_stock: int = Field(0, ge=0, description="Physical units held")
    reserved_quantity: int = Field(0, ge=0, description="Units earmarked for pending orders")
    reorder_level: int = Field(DEFAULT_REORDER_LEVEL, ge=0, description="Restock threshold")

    view_count: int = Field(0, ge=0)
    version: int = Field(0, ge=0, description="Optimistic concurrency token")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("price", "cost_price", mode="before")
    @classmethod
    def normalize_money(cls, v):
        return _money(v)

    def available_quantity(self) -> int:
        return max(0, self.quantity_in_stock - self.reserved_quantity)

    def is_available(self) -> bool:
        return self.available_quantity() > 0

    def needs_restock(self) -> bool:
        return self.available_quantity() <= self.reorder_level

    def margin(self) -> Optional[Decimal]:
        if self.cost_price is None or self.cost_price <= 0:
            return None
        return self.price - self.cost_price

    def margin_percent(self) -> Optional[Decimal]:
        if self.cost_price is None or self.cost_price <= 0:
            return None
        ratio = (self.margin() / self.cost_price).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
        return ratio * 100

    def to_document(self) -> Dict[str, Any]:
        """Convert to a MongoDB document (`_id` key, money as float)."""
        doc = self.model_dump(exclude={"id"})
        doc["_id"] = self.id
        doc["price"] = float(self.price)
        doc["cost_price"] = float(self.cost_price) if self.cost_price is not None else None
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BookRecord":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)


class BookCreate(BaseModel):
    """Input for creating a book."""
    title: str = Field(..., min_length=1, max_length=500)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    published_year: Optional[int] = Field(None, ge=1450, le=2100)
    isbn: Optional[str] = Field(None, max_length=20)
    cost_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    supplier_info: Optional[str] = Field(None, max_length=500)
    authors: List[NamedRefInput] = Field(default_factory=list)
    genres: List[NamedRefInput] = Field(default_factory=list)
    quantity_in_stock: int = Field(0, ge=0)
    reserved_quantity: int = Field(0, ge=0)
    reorder_level: Optional[int] = Field(None, ge=0)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Title is required")
        return v


class BookUpdate(BaseModel):
    """
    Full replacement of a book's descriptive fields.

    `version` is the version the client last read; the write is rejected if
    the stored record has moved on since. Stock fields are not accepted here.
    """
    id: Optional[str] = Field(None, description="Must match the path identifier when given")
    title: str = Field(..., min_length=1, max_length=500)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    published_year: Optional[int] = Field(None, ge=1450, le=2100)
    isbn: Optional[str] = Field(None, max_length=20)
    cost_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    supplier_info: Optional[str] = Field(None, max_length=500)
    authors: Optional[List[NamedRefInput]] = None
    genres: Optional[List[NamedRefInput]] = None
    version: int = Field(..., ge=0, description="Version the update is based on")


class PageMeta(BaseModel):
    """Pagination metadata for search results."""
    page: int
    size: int
    total: int
    total_pages: int

    @classmethod
    def of(cls, page: int, size: int, total: int) -> "PageMeta":
        total_pages = math.ceil(total / size) if size else 0
        return cls(page=page, size=size, total=total, total_pages=total_pages)
