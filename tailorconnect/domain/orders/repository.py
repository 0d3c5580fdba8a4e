"""Order repository - Database operations for orders and work plans"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Order, OrderStatusChange, WorkPlanStage
from ...statuses import OrderStatus


def _with_details(query):
    return query.options(
        selectinload(Order.tailor),
        selectinload(Order.stages).selectinload(WorkPlanStage.notes),
        selectinload(Order.delay_requests),
        selectinload(Order.status_history),
    )


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_order(db: Session, order_id: int) -> Optional[Order]:
        return _with_details(db.query(Order)).filter(Order.id == order_id).first()

    @staticmethod
    def get_order_for_update(db: Session, order_id: int) -> Optional[Order]:
        return (
            db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_by_booking(db: Session, booking_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.booking_id == booking_id).first()

    @staticmethod
    def add_status_change(
        order: Order,
        from_status: Optional[str],
        to_status: str,
        actor_id: Optional[str],
        note: Optional[str] = None,
    ) -> OrderStatusChange:
        change = OrderStatusChange(
            from_status=from_status, to_status=to_status, actor_id=actor_id, note=note
        )
        order.status_history.append(change)
        return change

    @staticmethod
    def list_orders(
        db: Session,
        customer_id: Optional[str] = None,
        tailor_id: Optional[int] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        query = db.query(Order)
        if customer_id is not None:
            query = query.filter(Order.customer_id == customer_id)
        if tailor_id is not None:
            query = query.filter(Order.tailor_id == tailor_id)
        if status:
            query = query.filter(Order.status == status)

        total = query.count()
        orders = (
            _with_details(query)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return orders, total

    @staticmethod
    def count_by_status(db: Session, tailor_id: int) -> dict[str, int]:
        counts = {s.value: 0 for s in OrderStatus}
        rows = (
            db.query(Order.status, func.count(Order.id))
            .filter(Order.tailor_id == tailor_id)
            .group_by(Order.status)
            .all()
        )
        for status, count in rows:
            counts[status] = count
        return counts

    @staticmethod
    def get_overdue_plan_creation(db: Session, now: datetime) -> list[Order]:
        return (
            _with_details(db.query(Order))
            .filter(Order.status == OrderStatus.AWAITING_PLAN.value, Order.plan_deadline < now)
            .order_by(Order.plan_deadline.asc())
            .all()
        )

    @staticmethod
    def get_overdue_completion(db: Session, today: date) -> list[Order]:
        return (
            _with_details(db.query(Order))
            .filter(
                Order.status == OrderStatus.IN_PROGRESS.value,
                Order.estimated_completion_date < today,
            )
            .order_by(Order.estimated_completion_date.asc())
            .all()
        )
