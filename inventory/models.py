"""
Models for inventory adjustments.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AdjustmentType(str, Enum):
    """Why stock changed."""
    STOCK_RECEIVED = "STOCK_RECEIVED"
    STOCK_DAMAGED = "STOCK_DAMAGED"
    STOCK_LOST = "STOCK_LOST"
    STOCK_RETURNED = "STOCK_RETURNED"
    STOCK_SOLD = "STOCK_SOLD"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


class InventoryAdjustment(BaseModel):
    """A signed change to a book's physical stock."""
    book_id: str = Field(..., description="Book to adjust")
    quantity_change: int = Field(..., description="Negative for damage, loss or sale; positive for receipts and returns")
    type: AdjustmentType = Field(..., description="Adjustment kind")
    reason: Optional[str] = Field(None, max_length=500, description="Free-text reason")
    timestamp: Optional[datetime] = Field(None, description="When the change happened")

    model_config = {
        "json_schema_extra": {
            "example": {
                "book_id": "6f1c2a9e-3d43-4b8f-9a51-0c1e9b3e7d21",
                "quantity_change": -2,
                "type": "STOCK_DAMAGED",
                "reason": "Water damage in storage",
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }
    }
