"""Tests for the order tracker: work plans, stages, delays and completion."""

from datetime import datetime, timedelta

import pytest

from tailorconnect import config
from tailorconnect.domain.orders.schemas import DelayRequestIn, DelayResponseIn, Feedback, StageIn
from tailorconnect.domain.orders.service import order_to_response
from tailorconnect.errors import (
    InvalidTransitionError,
    NotFoundError,
    PreconditionError,
    UnauthorizedActorError,
    ValidationError,
)
from tailorconnect.statuses import DelayStatus, OrderStatus, StageStatus

from tests.conftest import ADMIN, CUSTOMER, OTHER_CUSTOMER, TAILOR


def _stages(*days):
    return [StageIn(name=f"Stage {i + 1}", estimatedDays=d) for i, d in enumerate(days)]


@pytest.fixture
def in_progress_order(order_service, order):
    order_service.submit_work_plan(order.id, TAILOR, _stages(2, 3, 1))
    return order_service.approve_work_plan(order.id, CUSTOMER)


class TestConvertedOrder:
    def test_starts_awaiting_plan(self, order):
        assert order.status == OrderStatus.AWAITING_PLAN.value
        assert order.stages == []

    def test_plan_deadline_from_config(self, order):
        expected = datetime.utcnow() + timedelta(days=config.ORDER_PLAN_DEADLINE_DAYS)
        assert abs((order.plan_deadline - expected).total_seconds()) < 60

    def test_suggested_stages_come_from_quote(self, order):
        response = order_to_response(order)
        assert [(s.name, s.estimatedDays) for s in response.workPlan.suggestedStages] == [
            ("Design", 2),
            ("Sew", 5),
            ("Deliver", 1),
        ]
        assert response.progressPercentage == 0
        assert response.daysRemaining is None


class TestWorkPlan:
    def test_submit_moves_to_review(self, order_service, order):
        updated = order_service.submit_work_plan(order.id, TAILOR, _stages(2, 3))
        assert updated.status == OrderStatus.PLAN_REVIEW.value
        assert [s.position for s in updated.stages] == [0, 1]
        assert updated.estimated_completion_date == datetime.utcnow().date() + timedelta(days=5)

    def test_empty_plan_uses_quote_estimates(self, order_service, order):
        updated = order_service.submit_work_plan(order.id, TAILOR, [])
        assert [(s.name, s.estimated_days) for s in updated.stages] == [
            ("Design", 2),
            ("Sew", 5),
            ("Deliver", 1),
        ]

    def test_stage_needs_positive_days(self, order_service, order):
        with pytest.raises(ValidationError):
            order_service.submit_work_plan(order.id, TAILOR, _stages(2, 0))

    def test_only_tailor_submits(self, order_service, order):
        with pytest.raises(UnauthorizedActorError):
            order_service.submit_work_plan(order.id, CUSTOMER, _stages(2))

    def test_approve_starts_first_stage(self, in_progress_order):
        assert in_progress_order.status == OrderStatus.IN_PROGRESS.value
        assert [s.status for s in in_progress_order.stages] == [
            StageStatus.IN_PROGRESS.value,
            StageStatus.PENDING.value,
            StageStatus.PENDING.value,
        ]
        assert in_progress_order.work_started_at is not None

    def test_approve_before_submit_is_invalid(self, order_service, order):
        with pytest.raises(InvalidTransitionError) as exc_info:
            order_service.approve_work_plan(order.id, CUSTOMER)
        assert exc_info.value.allowed_actions == ["submit_work_plan", "cancel"]

    def test_reject_returns_to_awaiting_plan(self, order_service, order):
        order_service.submit_work_plan(order.id, TAILOR, _stages(2, 3))
        updated = order_service.reject_work_plan(order.id, CUSTOMER, "Too slow")
        assert updated.status == OrderStatus.AWAITING_PLAN.value
        assert updated.stages == []
        assert updated.plan_rejection_reason == "Too slow"
        assert len(updated.revision_history) == 1
        assert updated.revision_history[0]["previousStages"][1]["estimatedDays"] == 3

    def test_reject_requires_reason(self, order_service, order):
        order_service.submit_work_plan(order.id, TAILOR, _stages(2))
        with pytest.raises(ValidationError):
            order_service.reject_work_plan(order.id, CUSTOMER, None)

    def test_resubmit_after_reject(self, order_service, order):
        order_service.submit_work_plan(order.id, TAILOR, _stages(2, 3))
        order_service.reject_work_plan(order.id, CUSTOMER, "Too slow")
        updated = order_service.submit_work_plan(order.id, TAILOR, _stages(1, 2))
        assert updated.status == OrderStatus.PLAN_REVIEW.value
        assert [s.estimated_days for s in updated.stages] == [1, 2]

    def test_revision_limit(self, order_service, order, monkeypatch):
        monkeypatch.setattr(config, "ORDER_MAX_PLAN_REVISIONS", 1)
        order_service.submit_work_plan(order.id, TAILOR, _stages(2))
        order_service.reject_work_plan(order.id, CUSTOMER, "No")
        with pytest.raises(PreconditionError, match="revision limit"):
            order_service.submit_work_plan(order.id, TAILOR, _stages(2))


class TestStages:
    def test_stages_complete_in_order(self, order_service, in_progress_order):
        with pytest.raises(InvalidTransitionError) as exc_info:
            order_service.complete_stage(in_progress_order.id, TAILOR, 1)
        assert exc_info.value.allowed_actions == ["complete_stage:0"]

    def test_completing_a_stage_starts_the_next(self, order_service, in_progress_order):
        updated = order_service.complete_stage(in_progress_order.id, TAILOR, 0, "Pattern cut")
        assert [s.status for s in updated.stages] == ["completed", "in_progress", "pending"]
        assert [n.text for n in updated.stages[0].notes] == ["Pattern cut"]
        assert order_to_response(updated).progressPercentage == 33

    def test_completed_stage_cannot_complete_again(self, order_service, in_progress_order):
        order_service.complete_stage(in_progress_order.id, TAILOR, 0)
        with pytest.raises(InvalidTransitionError, match="already completed"):
            order_service.complete_stage(in_progress_order.id, TAILOR, 0)

    def test_last_stage_makes_order_ready(self, order_service, in_progress_order, notifier):
        for index in range(3):
            updated = order_service.complete_stage(in_progress_order.id, TAILOR, index)
        assert updated.status == OrderStatus.READY.value
        assert updated.work_completed_at is not None
        assert order_to_response(updated).progressPercentage == 100
        assert notifier.names[-1] == "order.stage_completed"

    def test_unknown_stage(self, order_service, in_progress_order):
        with pytest.raises(NotFoundError):
            order_service.complete_stage(in_progress_order.id, TAILOR, 7)

    def test_add_note(self, order_service, in_progress_order):
        updated = order_service.add_stage_note(in_progress_order.id, TAILOR, 0, "Fabric arrived")
        assert updated.stages[0].notes[0].added_by == TAILOR.id


class TestDelays:
    def test_approved_delay_extends_completion_once(self, order_service, in_progress_order):
        original = in_progress_order.estimated_completion_date
        order_service.request_delay(
            in_progress_order.id, TAILOR, DelayRequestIn(reason="Fabric late", additionalDays=3)
        )
        response = DelayResponseIn(requestIndex=0, approved=True)
        updated = order_service.respond_to_delay(in_progress_order.id, CUSTOMER, response)
        assert updated.estimated_completion_date == original + timedelta(days=3)

        again = order_service.respond_to_delay(in_progress_order.id, CUSTOMER, response)
        assert again.estimated_completion_date == original + timedelta(days=3)
        assert again.delay_requests[0].status == DelayStatus.APPROVED.value

    def test_contradicting_response_rejected(self, order_service, in_progress_order):
        order_service.request_delay(
            in_progress_order.id, TAILOR, DelayRequestIn(reason="Illness", additionalDays=2)
        )
        order_service.respond_to_delay(
            in_progress_order.id, CUSTOMER, DelayResponseIn(requestIndex=0, approved=False)
        )
        with pytest.raises(InvalidTransitionError):
            order_service.respond_to_delay(
                in_progress_order.id, CUSTOMER, DelayResponseIn(requestIndex=0, approved=True)
            )

    def test_rejected_delay_keeps_date(self, order_service, in_progress_order):
        original = in_progress_order.estimated_completion_date
        order_service.request_delay(
            in_progress_order.id, TAILOR, DelayRequestIn(reason="Illness", additionalDays=2)
        )
        updated = order_service.respond_to_delay(
            in_progress_order.id, CUSTOMER, DelayResponseIn(requestIndex=0, approved=False)
        )
        assert updated.estimated_completion_date == original

    def test_one_pending_delay_at_a_time(self, order_service, in_progress_order):
        order_service.request_delay(
            in_progress_order.id, TAILOR, DelayRequestIn(reason="Fabric late", additionalDays=3)
        )
        with pytest.raises(InvalidTransitionError, match="already pending"):
            order_service.request_delay(
                in_progress_order.id, TAILOR, DelayRequestIn(reason="Again", additionalDays=1)
            )

    def test_delay_days_must_be_positive(self, order_service, in_progress_order):
        with pytest.raises(ValidationError):
            order_service.request_delay(
                in_progress_order.id, TAILOR, DelayRequestIn(reason="Late", additionalDays=0)
            )

    def test_delay_only_while_in_progress(self, order_service, order):
        with pytest.raises(InvalidTransitionError):
            order_service.request_delay(
                order.id, TAILOR, DelayRequestIn(reason="Late", additionalDays=2)
            )

    def test_unknown_delay_request(self, order_service, in_progress_order):
        with pytest.raises(NotFoundError):
            order_service.respond_to_delay(
                in_progress_order.id, CUSTOMER, DelayResponseIn(requestIndex=0, approved=True)
            )

    def test_only_customer_responds(self, order_service, in_progress_order):
        order_service.request_delay(
            in_progress_order.id, TAILOR, DelayRequestIn(reason="Late", additionalDays=2)
        )
        with pytest.raises(UnauthorizedActorError):
            order_service.respond_to_delay(
                in_progress_order.id, OTHER_CUSTOMER, DelayResponseIn(requestIndex=0, approved=True)
            )


class TestCompletion:
    @pytest.fixture
    def ready_order(self, order_service, in_progress_order):
        for index in range(3):
            order = order_service.complete_stage(in_progress_order.id, TAILOR, index)
        return order

    def test_confirm_receipt_with_feedback(self, order_service, ready_order):
        updated = order_service.confirm_receipt(
            ready_order.id, CUSTOMER, Feedback(rating=5, comment="Perfect fit")
        )
        assert updated.status == OrderStatus.COMPLETED.value
        assert updated.completion_rating == 5
        assert order_to_response(updated).allowedActions == []

    def test_review_after_completion(self, order_service, ready_order):
        order_service.confirm_receipt(ready_order.id, CUSTOMER)
        updated = order_service.submit_review(ready_order.id, CUSTOMER, Feedback(rating=4))
        assert updated.completion_rating == 4
        with pytest.raises(InvalidTransitionError):
            order_service.submit_review(ready_order.id, CUSTOMER, Feedback(rating=3))

    def test_rating_range(self, order_service, ready_order):
        with pytest.raises(ValidationError):
            order_service.confirm_receipt(ready_order.id, CUSTOMER, Feedback(rating=6))

    def test_confirm_before_ready_is_invalid(self, order_service, in_progress_order):
        with pytest.raises(InvalidTransitionError):
            order_service.confirm_receipt(in_progress_order.id, CUSTOMER)


class TestCancellation:
    def test_customer_cancels(self, order_service, order):
        updated = order_service.cancel_order(order.id, CUSTOMER, "No longer needed")
        assert updated.status == OrderStatus.CANCELLED.value
        assert updated.cancelled_by == CUSTOMER.id

    def test_cancelled_order_is_final(self, order_service, order):
        order_service.cancel_order(order.id, ADMIN, None)
        with pytest.raises(InvalidTransitionError):
            order_service.cancel_order(order.id, CUSTOMER, None)
        with pytest.raises(InvalidTransitionError):
            order_service.submit_work_plan(order.id, TAILOR, _stages(1))

    def test_stranger_cannot_cancel(self, order_service, order):
        with pytest.raises(UnauthorizedActorError):
            order_service.cancel_order(order.id, OTHER_CUSTOMER, None)


class TestQueries:
    def test_tailor_stats(self, order_service, in_progress_order):
        stats = order_service.get_tailor_stats(TAILOR)
        assert stats["inProgress"] == 1
        assert stats["awaitingPlan"] == 0

    def test_overdue_requires_admin(self, order_service, order):
        with pytest.raises(UnauthorizedActorError):
            order_service.get_overdue(CUSTOMER)

    def test_overdue_plan_creation(self, db, order_service, order):
        order.plan_deadline = datetime.utcnow() - timedelta(days=1)
        db.commit()
        plan_overdue, completion_overdue = order_service.get_overdue(ADMIN)
        assert [o.id for o in plan_overdue] == [order.id]
        assert completion_overdue == []

    def test_overdue_completion(self, db, order_service, in_progress_order):
        in_progress_order.estimated_completion_date = datetime.utcnow().date() - timedelta(days=2)
        db.commit()
        _, completion_overdue = order_service.get_overdue(ADMIN)
        assert [o.id for o in completion_overdue] == [in_progress_order.id]
        assert order_to_response(completion_overdue[0]).isOverdue is True
