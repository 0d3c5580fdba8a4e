"""Order router - FastAPI endpoints for work plans, stages, delays and completion"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Actor, get_current_actor
from ...database import get_db
from ...services.notification_service import Notifier, get_notifier
from .schemas import (
    DelayRequestIn,
    DelayResponseIn,
    Feedback,
    OrderListResponse,
    OrderResponse,
    OrderStats,
    OverdueOrders,
    ReasonRequest,
    StageCompletion,
    StageNoteIn,
    WorkPlanSubmission,
)
from .service import OrderService, order_to_response, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["Admin"])


def get_order_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db, notifier)


def _list_response(orders, total: int, page: int, limit: int) -> OrderListResponse:
    return OrderListResponse(
        data=[order_to_response(o) for o in orders],
        pagination=paginate(total, page, limit),
    )


@router.get("/customer", response_model=OrderListResponse)
async def get_customer_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    orders, total = service.list_customer_orders(actor, status, page, limit)
    return _list_response(orders, total, page, limit)


@router.get("/tailor", response_model=OrderListResponse)
async def get_tailor_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    orders, total = service.list_tailor_orders(actor, status, page, limit)
    return _list_response(orders, total, page, limit)


@router.get("/stats", response_model=OrderStats)
async def get_order_stats(
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return service.get_tailor_stats(actor)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.get_order(order_id, actor))


@router.put("/{order_id}/work-plan", response_model=OrderResponse)
async def submit_work_plan(
    order_id: int,
    data: WorkPlanSubmission,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """Tailor submits the stage list; an empty list uses the quote's Design/Sew/Deliver plan"""
    return order_to_response(service.submit_work_plan(order_id, actor, data.stages))


@router.put("/{order_id}/work-plan/approve", response_model=OrderResponse)
async def approve_work_plan(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.approve_work_plan(order_id, actor))


@router.put("/{order_id}/work-plan/reject", response_model=OrderResponse)
async def reject_work_plan(
    order_id: int,
    data: ReasonRequest,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.reject_work_plan(order_id, actor, data.reason))


@router.put("/{order_id}/stages/{stage_index}/complete", response_model=OrderResponse)
async def complete_stage(
    order_id: int,
    stage_index: int,
    data: Optional[StageCompletion] = None,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    note = data.note if data else None
    return order_to_response(service.complete_stage(order_id, actor, stage_index, note))


@router.post("/{order_id}/stages/{stage_index}/notes", response_model=OrderResponse)
async def add_stage_note(
    order_id: int,
    stage_index: int,
    data: StageNoteIn,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.add_stage_note(order_id, actor, stage_index, data.text))


@router.put("/{order_id}/delay", response_model=OrderResponse)
async def request_delay(
    order_id: int,
    data: DelayRequestIn,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.request_delay(order_id, actor, data))


@router.put("/{order_id}/delay/respond", response_model=OrderResponse)
async def respond_to_delay(
    order_id: int,
    data: DelayResponseIn,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.respond_to_delay(order_id, actor, data))


@router.put("/{order_id}/complete", response_model=OrderResponse)
async def confirm_receipt(
    order_id: int,
    data: Optional[Feedback] = None,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """Customer confirms receipt of a ready order, optionally with a rating"""
    return order_to_response(service.confirm_receipt(order_id, actor, data))


@router.put("/{order_id}/review", response_model=OrderResponse)
async def submit_review(
    order_id: int,
    data: Feedback,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.submit_review(order_id, actor, data))


@router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: int,
    data: ReasonRequest,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    return order_to_response(service.cancel_order(order_id, actor, data.reason))


@admin_router.get("/overdue", response_model=OverdueOrders)
async def get_overdue_orders(
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """Orders past their plan deadline or their estimated completion date"""
    plan_overdue, completion_overdue = service.get_overdue(actor)
    return OverdueOrders(
        overduePlanCreation=[order_to_response(o) for o in plan_overdue],
        overdueCompletion=[order_to_response(o) for o in completion_overdue],
    )
