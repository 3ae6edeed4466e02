# orders/store.py
import logging
from typing import Iterable, Optional, Sequence

from django.db import DatabaseError
from django.utils import timezone

from core.models import PortalSettings
from .models import DispatchEvent, Order, OrderLine, OrderLog
from .snapshot import EventSnapshot, LineSnapshot, LogSnapshot, OrderSnapshot

logger = logging.getLogger(__name__)

ORDER_UPDATABLE_FIELDS = ("status", "remarks", "expected_dispatch_date")


class OrderStore:
    """
    Database access used by the dispatch reconciliation.

    Every method is a single unit of work on its own; callers decide how
    the steps are sequenced. Tests subclass this to inject failures.
    """

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get_order(self, order_id) -> Order:
        """
        Order with party and lines (and their items). Raises
        Order.DoesNotExist for an unknown id.
        """
        return Order.objects.with_party_lines().get(pk=order_id)

    def load_events(self, order_id) -> list[EventSnapshot]:
        qs = DispatchEvent.objects.for_order(order_id).chronological()
        return [EventSnapshot.from_event(e) for e in qs]

    def load_logs(self, order_id, limit: Optional[int] = None) -> list[LogSnapshot]:
        if limit is None:
            limit = PortalSettings.get_solo().activity_log_limit
        qs = OrderLog.objects.filter(order_id=order_id).order_by("-created_at", "-id")[:limit]
        return [LogSnapshot(id=log.id, message=log.message, created_at=log.created_at) for log in qs]

    def load_snapshot(self, order_id, *, log_limit: Optional[int] = None) -> OrderSnapshot:
        order = self.get_order(order_id)

        try:
            events = self.load_events(order.pk)
        except DatabaseError:
            logger.exception("Could not load dispatch events for order %s", order.pk)
            events = []

        try:
            logs = self.load_logs(order.pk, limit=log_limit)
        except DatabaseError:
            logger.exception("Could not load activity log for order %s", order.pk)
            logs = []

        return OrderSnapshot(
            id=order.pk,
            order_code=order.order_code,
            status=order.status,
            party_id=order.party_id,
            party_name=order.party.name,
            order_date=order.order_date,
            expected_dispatch_date=order.expected_dispatch_date,
            remarks=order.remarks,
            total_qty=order.total_qty,
            total_value=order.total_value,
            lines=tuple(LineSnapshot.from_line(line) for line in order.lines.all()),
            events=tuple(events),
            logs=tuple(logs),
        )

    def has_submission(self, order_id, submission_id) -> bool:
        if submission_id is None:
            return False
        return DispatchEvent.objects.for_order(order_id).filter(submission_id=submission_id).exists()

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------

    def insert_dispatch_events(self, order_id, events: Sequence, submission_id=None) -> list[DispatchEvent]:
        return DispatchEvent.objects.bulk_create(
            [
                DispatchEvent(
                    order_id=order_id,
                    order_line_id=event.order_line_id,
                    dispatched_qty=event.dispatched_qty,
                    dispatched_at=event.dispatched_at,
                    submission_id=submission_id,
                )
                for event in events
            ]
        )

    def update_line(self, line_id, *, dispatched_qty: int, line_remarks: Optional[str]) -> None:
        updated = OrderLine.objects.filter(pk=line_id).update(
            dispatched_qty=dispatched_qty,
            line_remarks=line_remarks,
            updated_at=timezone.now(),
        )
        if not updated:
            raise OrderLine.DoesNotExist(f"Order line {line_id} no longer exists.")

    def update_order(self, order_id, **fields) -> None:
        unknown = set(fields) - set(ORDER_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update order fields: {', '.join(sorted(unknown))}")
        updated = Order.objects.filter(pk=order_id).update(updated_at=timezone.now(), **fields)
        if not updated:
            raise Order.DoesNotExist(f"Order {order_id} no longer exists.")

    def insert_logs(self, order_id, messages: Iterable[str], actor=None) -> list[OrderLog]:
        return OrderLog.objects.bulk_create(
            [OrderLog(order_id=order_id, message=message, actor=actor) for message in messages]
        )
