# orders/snapshot.py
"""
Immutable read models of one order.

A snapshot is never patched in place: after a save the caller loads a
fresh one from the store.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from django.utils import timezone


@dataclass(frozen=True)
class LineSnapshot:
    id: int
    item_id: int
    item_name: str
    item_category: Optional[str]
    qty: int
    # Raw stored value; read it through dispatch.line_stats().
    dispatched_qty: Any
    dealer_rate_at_order: Decimal
    line_total: Optional[Decimal]
    line_remarks: Optional[str]

    @classmethod
    def from_line(cls, line) -> "LineSnapshot":
        return cls(
            id=line.id,
            item_id=line.item_id,
            item_name=line.item.name,
            item_category=line.item.category,
            qty=line.qty,
            dispatched_qty=line.dispatched_qty,
            dealer_rate_at_order=line.dealer_rate_at_order,
            line_total=line.line_total,
            line_remarks=line.line_remarks,
        )


@dataclass(frozen=True)
class EventSnapshot:
    id: int
    order_line_id: int
    dispatched_qty: int
    dispatched_at: datetime
    submission_id: Optional[UUID] = None

    @classmethod
    def from_event(cls, event) -> "EventSnapshot":
        return cls(
            id=event.id,
            order_line_id=event.order_line_id,
            dispatched_qty=event.dispatched_qty,
            dispatched_at=event.dispatched_at,
            submission_id=event.submission_id,
        )


@dataclass(frozen=True)
class LogSnapshot:
    id: int
    message: str
    created_at: datetime


@dataclass(frozen=True)
class OrderSnapshot:
    id: int
    order_code: str
    status: Optional[str]
    party_id: int
    party_name: str
    order_date: date
    expected_dispatch_date: Optional[date]
    remarks: Optional[str]
    total_qty: int
    total_value: Decimal
    lines: tuple[LineSnapshot, ...] = ()
    events: tuple[EventSnapshot, ...] = ()
    logs: tuple[LogSnapshot, ...] = ()
    loaded_at: datetime = field(default_factory=timezone.now)

    def line(self, line_id) -> Optional[LineSnapshot]:
        for line in self.lines:
            if str(line.id) == str(line_id):
                return line
        return None
