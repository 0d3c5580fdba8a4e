"""Quote schemas - Pydantic models for quote submission and response"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class QuoteItemIn(BaseModel):
    description: str
    quantity: int = 1
    unitPrice: float


class EstimatedDays(BaseModel):
    design: int = 3
    sew: int = 7
    deliver: int = 2


class QuoteSubmission(BaseModel):
    """Body of the tailor's quote. totalAmount is optional and checked when given."""

    items: list[QuoteItemIn] = Field(default_factory=list)
    laborCost: float = 0.0
    materialCost: float = 0.0
    totalAmount: Optional[float] = None
    currency: str = "USD"
    estimatedDays: EstimatedDays = Field(default_factory=EstimatedDays)
    notes: Optional[str] = None


class QuoteRejection(BaseModel):
    reason: str


class QuoteItemOut(BaseModel):
    description: str
    quantity: int
    unitPrice: float


class QuoteResponse(BaseModel):
    items: list[QuoteItemOut]
    laborCost: float
    materialCost: float
    totalAmount: float
    currency: str
    estimatedDays: EstimatedDays
    notes: Optional[str] = None
    status: str
    rejectionReason: Optional[str] = None
    submittedAt: Optional[datetime] = None
    respondedAt: Optional[datetime] = None
