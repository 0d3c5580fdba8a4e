"""Order domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class StageIn(BaseModel):
    name: str
    description: Optional[str] = None
    estimatedDays: int


class WorkPlanSubmission(BaseModel):
    """An empty stage list means "use the Design / Sew / Deliver plan from the quote"."""

    stages: list[StageIn] = Field(default_factory=list)


class ReasonRequest(BaseModel):
    reason: Optional[str] = None


class StageCompletion(BaseModel):
    note: Optional[str] = None


class StageNoteIn(BaseModel):
    text: str


class DelayRequestIn(BaseModel):
    reason: str
    additionalDays: int


class DelayResponseIn(BaseModel):
    requestIndex: int
    approved: bool
    notes: Optional[str] = None


class Feedback(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


class StageNoteOut(BaseModel):
    text: str
    addedBy: str
    addedAt: Optional[datetime] = None


class StageOut(BaseModel):
    index: int
    name: str
    description: Optional[str] = None
    estimatedDays: int
    status: str
    startedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    notes: list[StageNoteOut] = []


class WorkPlanOut(BaseModel):
    stages: list[StageOut]
    estimatedCompletionDate: Optional[date] = None
    submittedAt: Optional[datetime] = None
    approvedAt: Optional[datetime] = None
    rejectedAt: Optional[datetime] = None
    rejectionReason: Optional[str] = None
    revisionCount: int = 0
    suggestedStages: list[StageIn] = []


class DelayRequestOut(BaseModel):
    index: int
    reason: str
    additionalDays: int
    status: str
    requestedAt: Optional[datetime] = None
    reviewedAt: Optional[datetime] = None
    reviewNotes: Optional[str] = None


class FeedbackOut(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None
    submittedAt: Optional[datetime] = None


class OrderResponse(BaseModel):
    id: int
    bookingId: int
    tailorId: int
    customerId: str
    serviceType: str
    status: str
    statusLabel: str
    allowedActions: list[str]
    workPlan: WorkPlanOut
    delayRequests: list[DelayRequestOut]
    completionFeedback: Optional[FeedbackOut] = None
    progressPercentage: int
    isOverdue: bool
    daysRemaining: Optional[int] = None
    planDeadline: datetime
    cancellationReason: Optional[str] = None
    createdAt: Optional[datetime] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class OrderListResponse(BaseModel):
    data: list[OrderResponse]
    pagination: Pagination


class OrderStats(BaseModel):
    stats: dict[str, int]
    awaitingPlan: int
    inProgress: int


class OverdueOrders(BaseModel):
    overduePlanCreation: list[OrderResponse]
    overdueCompletion: list[OrderResponse]
