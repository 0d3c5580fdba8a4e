"""
Order tracker service

Owns everything that happens to a booking after payment: the work plan and
its review loop, sequential stage completion, delay requests and the
customer's final confirmation. Every mutating method follows the same shape:
lock the order row, check the actor and the status, mutate, record a status
change when the status moved, commit once, then publish an event.
"""

import logging
from datetime import datetime, timedelta
from math import ceil
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...auth import Actor
from ...errors import (
    InvalidTransitionError,
    NotFoundError,
    PreconditionError,
    UnauthorizedActorError,
    ValidationError,
)
from ...models import Booking, DelayRequest, Order, StageNote, WorkPlanStage
from ...services.notification_service import LoggingNotifier, Notifier
from ...shared.validators import clean_text
from ...statuses import ActorRole, DelayStatus, OrderStatus, StageStatus
from ..tailors.repository import TailorRepository
from .repository import OrderRepository
from .schemas import (
    DelayRequestIn,
    DelayResponseIn,
    Feedback,
    OrderResponse,
    StageIn,
)
from .work_plan import (
    current_stage_index,
    days_remaining,
    default_stages,
    estimated_completion,
    is_overdue,
    progress_percentage,
)

logger = logging.getLogger(__name__)

# What each party can do from each status; reported back on rejected operations
ORDER_ACTIONS: dict[OrderStatus, tuple[str, ...]] = {
    OrderStatus.AWAITING_PLAN: ("submit_work_plan", "cancel"),
    OrderStatus.PLAN_REVIEW: ("approve_work_plan", "reject_work_plan", "cancel"),
    OrderStatus.IN_PROGRESS: (
        "complete_stage",
        "add_stage_note",
        "request_delay",
        "respond_to_delay",
        "cancel",
    ),
    OrderStatus.READY: ("confirm_receipt", "respond_to_delay", "cancel"),
    OrderStatus.COMPLETED: ("submit_review",),
    OrderStatus.CANCELLED: (),
}


def allowed_order_actions(order: Order) -> list[str]:
    actions = list(ORDER_ACTIONS[OrderStatus(order.status)])
    if order.status == OrderStatus.COMPLETED.value and order.feedback_submitted_at:
        actions.remove("submit_review")
    return actions


def convert_booking_to_order(db: Session, booking: Booking, actor_id: Optional[str] = None) -> Order:
    """
    Create the order for a paid booking.

    Runs inside the caller's transaction: the order is flushed, never
    committed, so a failure here rolls back together with the booking's
    own status change.
    """
    quote = booking.quote
    if quote is None:
        raise PreconditionError(
            "Cannot convert a booking without a quote",
            current_state=booking.status,
            attempted_action="convert",
        )

    now = datetime.utcnow()
    order = Order(
        booking_id=booking.id,
        tailor_id=booking.tailor_id,
        customer_id=booking.customer_id,
        service_type=booking.service,
        status=OrderStatus.AWAITING_PLAN.value,
        plan_deadline=now + timedelta(days=config.ORDER_PLAN_DEADLINE_DAYS),
        revision_history=[],
        suggested_design_days=quote.design_days,
        suggested_sew_days=quote.sew_days,
        suggested_deliver_days=quote.deliver_days,
    )
    OrderRepository.add_status_change(
        order, None, OrderStatus.AWAITING_PLAN.value, actor_id, f"Created from booking {booking.id}"
    )
    db.add(order)
    db.flush()
    logger.info(f"📦 Order {order.id} created from booking {booking.id}")
    return order


def _validate_stage(index: int, stage: StageIn) -> dict:
    name = (stage.name or "").strip()
    if not name:
        raise ValidationError(f"Stage {index + 1} name is required")
    if stage.estimatedDays < 1:
        raise ValidationError(f"Stage {index + 1} estimated days must be at least 1")
    return {
        "name": clean_text(name, 100, "Stage name"),
        "description": clean_text(stage.description, 500, "Stage description"),
        "estimated_days": stage.estimatedDays,
    }


def order_to_response(order: Order, today=None) -> OrderResponse:
    today = today or datetime.utcnow().date()
    stages = list(order.stages)
    feedback = None
    if order.feedback_submitted_at:
        feedback = {
            "rating": order.completion_rating,
            "comment": order.completion_comment,
            "submittedAt": order.feedback_submitted_at,
        }

    return OrderResponse(
        id=order.id,
        bookingId=order.booking_id,
        tailorId=order.tailor_id,
        customerId=order.customer_id,
        serviceType=order.service_type,
        status=order.status,
        statusLabel=OrderStatus(order.status).label,
        allowedActions=allowed_order_actions(order),
        workPlan={
            "stages": [
                {
                    "index": s.position,
                    "name": s.name,
                    "description": s.description,
                    "estimatedDays": s.estimated_days,
                    "status": s.status,
                    "startedAt": s.started_at,
                    "completedAt": s.completed_at,
                    "notes": [
                        {"text": n.text, "addedBy": n.added_by, "addedAt": n.added_at}
                        for n in s.notes
                    ],
                }
                for s in stages
            ],
            "estimatedCompletionDate": order.estimated_completion_date,
            "submittedAt": order.plan_submitted_at,
            "approvedAt": order.plan_approved_at,
            "rejectedAt": order.plan_rejected_at,
            "rejectionReason": order.plan_rejection_reason,
            "revisionCount": len(order.revision_history or []),
            "suggestedStages": [
                {
                    "name": s["name"],
                    "description": s["description"],
                    "estimatedDays": s["estimated_days"],
                }
                for s in default_stages(order)
            ],
        },
        delayRequests=[
            {
                "index": d.position,
                "reason": d.reason,
                "additionalDays": d.additional_days,
                "status": d.status,
                "requestedAt": d.requested_at,
                "reviewedAt": d.reviewed_at,
                "reviewNotes": d.review_notes,
            }
            for d in order.delay_requests
        ],
        completionFeedback=feedback,
        progressPercentage=progress_percentage(stages),
        isOverdue=is_overdue(order, today),
        daysRemaining=days_remaining(order, today),
        planDeadline=order.plan_deadline,
        cancellationReason=order.cancellation_reason,
        createdAt=order.created_at,
    )


class OrderService:
    """Service layer for the post-payment order lifecycle"""

    def __init__(self, db: Session, notifier: Optional[Notifier] = None):
        self.db = db
        self.repo = OrderRepository()
        self.tailors = TailorRepository()
        self.notifier = notifier or LoggingNotifier()

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _load(self, order_id: int, for_update: bool = False) -> Order:
        if for_update:
            order = self.repo.get_order_for_update(self.db, order_id)
        else:
            order = self.repo.get_order(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def _is_tailor(self, order: Order, actor: Actor) -> bool:
        return actor.role == ActorRole.TAILOR and order.tailor.user_id == actor.id

    def _is_customer(self, order: Order, actor: Actor) -> bool:
        return actor.role == ActorRole.CUSTOMER and order.customer_id == actor.id

    def _require_tailor(self, order: Order, actor: Actor, action: str) -> None:
        if not self._is_tailor(order, actor):
            raise UnauthorizedActorError(
                "Only the order's tailor can do this",
                current_state=order.status,
                attempted_action=action,
            )

    def _require_customer(self, order: Order, actor: Actor, action: str) -> None:
        if not self._is_customer(order, actor):
            raise UnauthorizedActorError(
                "Only the order's customer can do this",
                current_state=order.status,
                attempted_action=action,
            )

    def _require_status(self, order: Order, action: str, *statuses: OrderStatus) -> None:
        if OrderStatus(order.status) in statuses:
            return
        allowed = allowed_order_actions(order)
        logger.warning(f"⚠️ Rejected order {order.id} action {action} from {order.status}")
        raise InvalidTransitionError(
            f"Cannot {action.replace('_', ' ')} an order that is {order.status}. "
            f"Allowed actions: {', '.join(allowed) if allowed else 'none'}",
            current_state=order.status,
            attempted_action=action,
            allowed_actions=allowed,
        )

    def _set_status(self, order: Order, status: OrderStatus, actor: Actor, note: Optional[str] = None):
        previous = order.status
        order.status = status.value
        self.repo.add_status_change(order, previous, status.value, actor.id, note)

    def _commit_and_publish(self, order: Order, event: str, **payload) -> Order:
        self.db.commit()
        self.notifier.publish(
            event,
            {
                "orderId": order.id,
                "bookingId": order.booking_id,
                "customerId": order.customer_id,
                "tailorId": order.tailor_id,
                "status": order.status,
                **payload,
            },
        )
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int, actor: Actor) -> Order:
        order = self._load(order_id)
        if not (actor.is_admin or self._is_tailor(order, actor) or self._is_customer(order, actor)):
            raise UnauthorizedActorError("Not authorized to view this order")
        return order

    def list_customer_orders(self, actor: Actor, status: Optional[str], page: int, limit: int):
        if actor.role != ActorRole.CUSTOMER:
            raise UnauthorizedActorError("Only customers have customer orders")
        return self.repo.list_orders(self.db, customer_id=actor.id, status=status, page=page, limit=limit)

    def list_tailor_orders(self, actor: Actor, status: Optional[str], page: int, limit: int):
        tailor = self._own_tailor(actor)
        return self.repo.list_orders(self.db, tailor_id=tailor.id, status=status, page=page, limit=limit)

    def get_tailor_stats(self, actor: Actor) -> dict:
        tailor = self._own_tailor(actor)
        counts = self.repo.count_by_status(self.db, tailor.id)
        return {
            "stats": counts,
            "awaitingPlan": counts[OrderStatus.AWAITING_PLAN.value],
            "inProgress": counts[OrderStatus.IN_PROGRESS.value],
        }

    def get_overdue(self, actor: Actor) -> tuple[list[Order], list[Order]]:
        """Orders past their plan deadline, and in-progress orders past their estimate"""
        if not actor.is_admin:
            raise UnauthorizedActorError("Only admins can view overdue orders")
        now = datetime.utcnow()
        return (
            self.repo.get_overdue_plan_creation(self.db, now),
            self.repo.get_overdue_completion(self.db, now.date()),
        )

    def _own_tailor(self, actor: Actor):
        if actor.role != ActorRole.TAILOR:
            raise UnauthorizedActorError("Only tailors have tailor orders")
        tailor = self.tailors.get_by_user_id(self.db, actor.id)
        if not tailor:
            raise NotFoundError("Tailor profile not found")
        return tailor

    # ------------------------------------------------------------------
    # Work plan
    # ------------------------------------------------------------------

    def submit_work_plan(self, order_id: int, actor: Actor, stages: list[StageIn]) -> Order:
        """
        Submit (or resubmit after rejection) the ordered list of stages.

        An empty list uses the Design / Sew / Deliver plan built from the
        accepted quote's estimates.
        """
        order = self._load(order_id, for_update=True)
        self._require_tailor(order, actor, "submit_work_plan")
        self._require_status(order, "submit_work_plan", OrderStatus.AWAITING_PLAN)

        revisions = len(order.revision_history or [])
        if order.plan_rejected_at and revisions >= config.ORDER_MAX_PLAN_REVISIONS:
            raise PreconditionError(
                f"Maximum revision limit ({config.ORDER_MAX_PLAN_REVISIONS}) reached",
                current_state=order.status,
                attempted_action="submit_work_plan",
            )

        if stages:
            plan = [_validate_stage(i, s) for i, s in enumerate(stages)]
        else:
            plan = default_stages(order)
        if not plan:
            raise PreconditionError(
                "At least one stage is required",
                current_state=order.status,
                attempted_action="submit_work_plan",
            )

        now = datetime.utcnow()
        # Old rows must be gone before the new positions are inserted
        order.stages = []
        self.db.flush()
        order.stages = [
            WorkPlanStage(position=i, status=StageStatus.PENDING.value, **stage)
            for i, stage in enumerate(plan)
        ]
        order.plan_submitted_at = now
        order.estimated_completion_date = estimated_completion(now.date(), plan)
        self._set_status(order, OrderStatus.PLAN_REVIEW, actor, f"{len(plan)} stages")

        logger.info(f"📝 Work plan submitted for order {order.id}: {len(plan)} stages")
        return self._commit_and_publish(order, "order.plan_submitted", stageCount=len(plan))

    def approve_work_plan(self, order_id: int, actor: Actor) -> Order:
        order = self._load(order_id, for_update=True)
        self._require_customer(order, actor, "approve_work_plan")
        self._require_status(order, "approve_work_plan", OrderStatus.PLAN_REVIEW)
        if not order.stages:
            raise PreconditionError(
                "The work plan has no stages",
                current_state=order.status,
                attempted_action="approve_work_plan",
            )

        now = datetime.utcnow()
        order.plan_approved_at = now
        order.work_started_at = now
        first = order.stages[0]
        first.status = StageStatus.IN_PROGRESS.value
        first.started_at = now
        self._set_status(order, OrderStatus.IN_PROGRESS, actor)

        logger.info(f"✅ Work plan approved for order {order.id}")
        return self._commit_and_publish(order, "order.plan_approved")

    def reject_work_plan(self, order_id: int, actor: Actor, reason: Optional[str]) -> Order:
        """Send the plan back to the tailor; the rejected stages go to the revision history"""
        order = self._load(order_id, for_update=True)
        self._require_customer(order, actor, "reject_work_plan")
        self._require_status(order, "reject_work_plan", OrderStatus.PLAN_REVIEW)
        reason = clean_text(reason, 500, "Rejection reason")
        if not reason:
            raise ValidationError("A reason is required to reject a work plan")

        now = datetime.utcnow()
        snapshot = {
            "revisedAt": now.isoformat(),
            "reason": reason,
            "previousStages": [
                {"name": s.name, "description": s.description, "estimatedDays": s.estimated_days}
                for s in order.stages
            ],
        }
        # Reassign so the JSON column is flagged dirty
        order.revision_history = [*(order.revision_history or []), snapshot]
        order.stages = []
        order.estimated_completion_date = None
        order.plan_rejected_at = now
        order.plan_rejection_reason = reason
        self._set_status(order, OrderStatus.AWAITING_PLAN, actor, reason)

        logger.info(
            f"↩️ Work plan rejected for order {order.id} "
            f"(revision {len(order.revision_history)}/{config.ORDER_MAX_PLAN_REVISIONS})"
        )
        return self._commit_and_publish(order, "order.plan_rejected", reason=reason)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _stage(self, order: Order, stage_index: int) -> WorkPlanStage:
        if not order.stages:
            raise PreconditionError(
                "The order has no work plan stages",
                current_state=order.status,
                attempted_action="complete_stage",
            )
        if stage_index < 0 or stage_index >= len(order.stages):
            raise NotFoundError(f"Stage {stage_index} not found")
        return order.stages[stage_index]

    def complete_stage(
        self, order_id: int, actor: Actor, stage_index: int, note: Optional[str] = None
    ) -> Order:
        """Complete the in-progress stage; stages finish strictly in order"""
        order = self._load(order_id, for_update=True)
        self._require_tailor(order, actor, "complete_stage")
        self._require_status(order, "complete_stage", OrderStatus.IN_PROGRESS)
        stage = self._stage(order, stage_index)
        note = clean_text(note, 500, "Stage note")

        current = current_stage_index(order.stages)
        if stage.status != StageStatus.IN_PROGRESS.value:
            if stage.status == StageStatus.COMPLETED.value:
                message = f"Stage '{stage.name}' is already completed"
            else:
                message = f"Complete stage {current} before stage {stage_index}"
            raise InvalidTransitionError(
                message,
                current_state=stage.status,
                attempted_action="complete_stage",
                allowed_actions=[f"complete_stage:{current}"] if current is not None else [],
            )

        now = datetime.utcnow()
        stage.status = StageStatus.COMPLETED.value
        stage.completed_at = now
        if note:
            stage.notes.append(StageNote(text=note, added_by=actor.id))

        if stage_index + 1 < len(order.stages):
            following = order.stages[stage_index + 1]
            following.status = StageStatus.IN_PROGRESS.value
            following.started_at = now
        else:
            order.work_completed_at = now
            self._set_status(order, OrderStatus.READY, actor, "All stages completed")

        logger.info(f"🧵 Order {order.id} stage {stage_index} ({stage.name}) completed")
        return self._commit_and_publish(
            order, "order.stage_completed", stageIndex=stage_index, stageName=stage.name
        )

    def add_stage_note(self, order_id: int, actor: Actor, stage_index: int, text: str) -> Order:
        order = self._load(order_id, for_update=True)
        self._require_tailor(order, actor, "add_stage_note")
        self._require_status(order, "add_stage_note", OrderStatus.IN_PROGRESS, OrderStatus.READY)
        stage = self._stage(order, stage_index)
        text = clean_text(text, 500, "Note")
        if not text:
            raise ValidationError("Note text is required")

        stage.notes.append(StageNote(text=text, added_by=actor.id))
        return self._commit_and_publish(order, "order.stage_note_added", stageIndex=stage_index)

    # ------------------------------------------------------------------
    # Delays
    # ------------------------------------------------------------------

    def request_delay(self, order_id: int, actor: Actor, data: DelayRequestIn) -> Order:
        """Ask the customer for more time; one pending request at a time"""
        order = self._load(order_id, for_update=True)
        self._require_tailor(order, actor, "request_delay")
        self._require_status(order, "request_delay", OrderStatus.IN_PROGRESS)

        reason = clean_text(data.reason, 500, "Delay reason")
        if not reason:
            raise ValidationError("A reason is required to request a delay")
        if data.additionalDays < 1:
            raise ValidationError("Additional days must be at least 1")
        if any(d.status == DelayStatus.PENDING.value for d in order.delay_requests):
            raise InvalidTransitionError(
                "A delay request is already pending",
                current_state=order.status,
                attempted_action="request_delay",
                allowed_actions=[a for a in allowed_order_actions(order) if a != "request_delay"],
            )

        position = len(order.delay_requests)
        order.delay_requests.append(
            DelayRequest(
                position=position,
                reason=reason,
                additional_days=data.additionalDays,
                status=DelayStatus.PENDING.value,
                requested_by=actor.id,
            )
        )
        logger.info(f"⏳ Delay of {data.additionalDays} days requested for order {order.id}")
        return self._commit_and_publish(
            order, "order.delay_requested", requestIndex=position, additionalDays=data.additionalDays
        )

    def respond_to_delay(self, order_id: int, actor: Actor, data: DelayResponseIn) -> Order:
        """
        Approve or reject a delay request.

        Repeating the same answer is a no-op, so the completion date is
        extended at most once per request. A contradicting answer is rejected.
        """
        order = self._load(order_id, for_update=True)
        self._require_customer(order, actor, "respond_to_delay")
        self._require_status(order, "respond_to_delay", OrderStatus.IN_PROGRESS, OrderStatus.READY)

        if data.requestIndex < 0 or data.requestIndex >= len(order.delay_requests):
            raise NotFoundError("Delay request not found")
        request = order.delay_requests[data.requestIndex]
        review_notes = clean_text(data.notes, 500, "Review notes")
        decision = DelayStatus.APPROVED if data.approved else DelayStatus.REJECTED

        if request.status == decision.value:
            logger.info(f"ℹ️ Delay request {data.requestIndex} on order {order.id} already {decision.value}")
            self.db.commit()
            return order
        if request.status != DelayStatus.PENDING.value:
            raise InvalidTransitionError(
                f"This delay request was already {request.status}",
                current_state=request.status,
                attempted_action="respond_to_delay",
                allowed_actions=[],
            )

        request.status = decision.value
        request.reviewed_at = datetime.utcnow()
        request.review_notes = review_notes
        if data.approved and order.estimated_completion_date:
            order.estimated_completion_date = order.estimated_completion_date + timedelta(
                days=request.additional_days
            )

        logger.info(f"⏳ Delay request {data.requestIndex} on order {order.id} {decision.value}")
        return self._commit_and_publish(
            order, "order.delay_responded", requestIndex=data.requestIndex, approved=data.approved
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _store_feedback(self, order: Order, feedback: Feedback) -> None:
        if feedback.rating is not None and not 1 <= feedback.rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        order.completion_rating = feedback.rating
        order.completion_comment = clean_text(feedback.comment, 1000, "Comment")
        order.feedback_submitted_at = datetime.utcnow()

    def confirm_receipt(self, order_id: int, actor: Actor, feedback: Optional[Feedback] = None) -> Order:
        """Customer confirms the garment was received; optional feedback is stored with it"""
        order = self._load(order_id, for_update=True)
        self._require_customer(order, actor, "confirm_receipt")
        if order.status == OrderStatus.COMPLETED.value and feedback is not None:
            return self._review(order, feedback)
        self._require_status(order, "confirm_receipt", OrderStatus.READY)
        if feedback is not None and feedback.rating is not None and not 1 <= feedback.rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")

        order.completed_at = datetime.utcnow()
        if feedback is not None and (feedback.rating is not None or feedback.comment):
            self._store_feedback(order, feedback)
        self._set_status(order, OrderStatus.COMPLETED, actor)

        logger.info(f"🎉 Order {order.id} completed")
        return self._commit_and_publish(order, "order.completed", rating=order.completion_rating)

    def submit_review(self, order_id: int, actor: Actor, feedback: Feedback) -> Order:
        order = self._load(order_id, for_update=True)
        self._require_customer(order, actor, "submit_review")
        return self._review(order, feedback)

    def _review(self, order: Order, feedback: Feedback) -> Order:
        self._require_status(order, "submit_review", OrderStatus.COMPLETED)
        if order.feedback_submitted_at:
            raise InvalidTransitionError(
                "Feedback was already submitted for this order",
                current_state=order.status,
                attempted_action="submit_review",
                allowed_actions=[],
            )
        if feedback.rating is None:
            raise ValidationError("A rating is required")
        self._store_feedback(order, feedback)
        return self._commit_and_publish(order, "order.reviewed", rating=feedback.rating)

    def cancel_order(self, order_id: int, actor: Actor, reason: Optional[str]) -> Order:
        order = self._load(order_id, for_update=True)
        if not (actor.is_admin or self._is_tailor(order, actor) or self._is_customer(order, actor)):
            raise UnauthorizedActorError(
                "Not authorized to cancel this order",
                current_state=order.status,
                attempted_action="cancel",
            )
        if OrderStatus(order.status).is_terminal:
            self._require_status(order, "cancel")

        reason = clean_text(reason, 500, "Cancellation reason")
        order.cancelled_at = datetime.utcnow()
        order.cancelled_by = actor.id
        order.cancellation_reason = reason
        self._set_status(order, OrderStatus.CANCELLED, actor, reason)

        logger.info(f"🚫 Order {order.id} cancelled by {actor.role.value} {actor.id}")
        return self._commit_and_publish(order, "order.cancelled", reason=reason)


def paginate(total: int, page: int, limit: int) -> dict:
    return {"total": total, "page": page, "limit": limit, "pages": ceil(total / limit) if limit else 0}
