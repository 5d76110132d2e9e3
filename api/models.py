"""
API request and response schemas for the FastAPI application.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from catalog.models import BookRecord, NamedRef, PageMeta


class BookResponse(BaseModel):
    """Book response model for API."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    price: float = Field(..., description="Selling price")
    published_year: Optional[int] = Field(None, description="Year of publication")
    isbn: Optional[str] = Field(None, description="ISBN")
    authors: List[NamedRef] = Field(default_factory=list, description="Authors")
    genres: List[NamedRef] = Field(default_factory=list, description="Genres")
    quantity_in_stock: int = Field(..., description="Physical units held")
    reserved_quantity: int = Field(..., description="Units earmarked for pending orders")
    available_quantity: int = Field(..., description="Stock minus reservations, never negative")
    reorder_level: int = Field(..., description="Restock threshold")
    needs_restock: bool = Field(..., description="Available quantity is at or below the reorder level")
    cost_price: Optional[float] = Field(None, description="Purchase cost")
    margin: Optional[float] = Field(None, description="Price minus cost")
    supplier_info: Optional[str] = Field(None, description="Supplier details")
    view_count: int = Field(0, description="Number of views")
    version: int = Field(..., description="Version to send back with updates")
    created_at: Optional[str] = Field(None, description="Creation timestamp")
    updated_at: Optional[str] = Field(None, description="Last update timestamp")

    @classmethod
    def from_record(cls, record: BookRecord) -> "BookResponse":
        margin = record.margin()
        return cls(
            id=record.id,
            title=record.title,
            price=float(record.price),
            published_year=record.published_year,
            isbn=record.isbn,
            authors=record.authors,
            genres=record.genres,
            quantity_in_stock=record.quantity_in_stock,
            reserved_quantity=record.reserved_quantity,
            available_quantity=record.available_quantity(),
            reorder_level=record.reorder_level,
            needs_restock=record.needs_restock(),
            cost_price=float(record.cost_price) if record.cost_price is not None else None,
            margin=float(margin) if margin is not None else None,
            supplier_info=record.supplier_info,
            view_count=record.view_count,
            version=record.version,
            created_at=record.created_at.isoformat() if record.created_at else None,
            updated_at=record.updated_at.isoformat() if record.updated_at else None,
        )


class BookEnvelope(BaseModel):
    """Single book wrapped in a data envelope."""
    data: BookResponse


class BookListEnvelope(BaseModel):
    """List of books with optional pagination metadata."""
    data: List[BookResponse] = Field(..., description="Books")
    meta: Optional[PageMeta] = Field(None, description="Pagination metadata")

    @classmethod
    def from_records(cls, records: List[BookRecord], meta: Optional[PageMeta] = None) -> "BookListEnvelope":
        return cls(data=[BookResponse.from_record(record) for record in records], meta=meta)


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")
    type: Optional[str] = Field(None, description="Problem type")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
