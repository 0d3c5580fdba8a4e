"""Work-plan helpers: default stages, progress and schedule figures"""

from datetime import date, timedelta
from typing import Optional

from ...models import Order, WorkPlanStage
from ...statuses import OrderStatus, StageStatus

DEFAULT_STAGE_DESCRIPTIONS = (
    ("Design", "Design phase - patterns and preparation"),
    ("Sew", "Sewing and assembly"),
    ("Deliver", "Final fitting and delivery"),
)


def default_stages(order: Order) -> list[dict]:
    """Design / Sew / Deliver using the estimates from the accepted quote"""
    days = (order.suggested_design_days, order.suggested_sew_days, order.suggested_deliver_days)
    if any(d is None for d in days):
        return []
    return [
        {"name": name, "description": description, "estimated_days": estimated}
        for (name, description), estimated in zip(DEFAULT_STAGE_DESCRIPTIONS, days)
    ]


def current_stage_index(stages: list[WorkPlanStage]) -> Optional[int]:
    for index, stage in enumerate(stages):
        if stage.status == StageStatus.IN_PROGRESS.value:
            return index
    return None


def progress_percentage(stages: list[WorkPlanStage]) -> int:
    if not stages:
        return 0
    completed = sum(1 for s in stages if s.status == StageStatus.COMPLETED.value)
    return round(completed * 100 / len(stages))


def estimated_completion(start: date, stages: list[dict]) -> date:
    return start + timedelta(days=sum(s["estimated_days"] for s in stages))


def is_overdue(order: Order, today: date) -> bool:
    if order.estimated_completion_date is None:
        return False
    if OrderStatus(order.status).is_terminal:
        return False
    return today > order.estimated_completion_date


def days_remaining(order: Order, today: date) -> Optional[int]:
    if order.estimated_completion_date is None:
        return None
    return (order.estimated_completion_date - today).days
