# orders/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from catalog.models import Item
from core.domain.dispatcher import emit
from .dispatch import (
    DispatchBatch,
    DispatchSummary,
    OrderTotals,
    as_quantity,
    dispatch_summary,
    fulfilment_bucket,
    group_dispatch_batches,
    is_overdue,
    line_stats,
    order_totals,
)
from .domain import OrderPunched, OrderStatusChanged
from .models import MANUAL_STATUSES, PUNCH_STATUSES, Order, OrderLine, OrderLog, OrderStatus
from .reconciliation import clean_note
from .snapshot import LineSnapshot, OrderSnapshot
from .store import OrderStore

logger = logging.getLogger(__name__)


def log_order_event(order: Order, message: str, *, actor: Any = None) -> OrderLog:
    """
    Append one entry to the order's activity log.

    The actor is only stored when it is an authenticated user.
    """
    return OrderLog.objects.create(order=order, message=message, actor=_actor_or_none(actor))


def _actor_or_none(actor):
    if actor is not None and getattr(actor, "is_authenticated", False):
        return actor
    return None


# ============================================================
# Punching an order
# ============================================================

@dataclass(frozen=True)
class LineInput:
    item: Optional[Item]
    qty: Any
    note: Optional[str] = None


def _valid_lines(lines: Iterable[Any]) -> list[tuple[Item, int, Optional[str]]]:
    """
    Drop rows without an item or with a quantity <= 0.
    """
    valid = []
    for row in lines:
        if isinstance(row, Mapping):
            item, qty, note = row.get("item"), row.get("qty"), row.get("note")
        else:
            item, qty, note = row.item, row.qty, getattr(row, "note", None)
        qty = as_quantity(qty)
        if item is None or qty is None or qty <= 0:
            continue
        valid.append((item, qty, clean_note(note)))
    return valid


@transaction.atomic
def punch_order(
    *,
    party,
    lines: Iterable[Any],
    order_date: Optional[date] = None,
    expected_dispatch_date: Optional[date] = None,
    remarks: Optional[str] = None,
    status: str = OrderStatus.SUBMITTED,
    actor: Any = None,
) -> Order:
    """
    Create an order with its lines.

    Rates are copied from the items at this moment; later item rate changes
    do not touch the order.
    """
    if status not in PUNCH_STATUSES:
        raise ValidationError(
            {"status": _("A new order can only be saved as draft or submitted.")}
        )

    valid = _valid_lines(lines)
    if not valid:
        raise ValidationError(
            {"lines": _("Add at least one line item with a quantity.")},
            code="no_lines",
        )

    order = Order.objects.create(
        party=party,
        order_date=order_date or timezone.localdate(),
        expected_dispatch_date=expected_dispatch_date,
        remarks=clean_note(remarks),
        status=status,
        created_by=_actor_or_none(actor),
    )

    for item, qty, note in valid:
        OrderLine.objects.create(
            order=order,
            item=item,
            qty=qty,
            dealer_rate_at_order=item.dealer_rate,
            line_remarks=note,
        )

    order.recompute_totals(save=True)

    log_order_event(
        order,
        f"Order punched with {len(valid)} line(s) ({order.total_qty} pcs).",
        actor=actor,
    )
    logger.info("Punched order %s for party %s", order.order_code, order.party_id)

    event = OrderPunched(
        order_id=order.pk,
        order_code=order.order_code,
        line_count=len(valid),
        total_qty=order.total_qty,
    )
    transaction.on_commit(lambda: emit(event))
    return order


# ============================================================
# Header edits
# ============================================================

@transaction.atomic
def set_order_status(order: Order, new_status: str, *, actor: Any = None) -> Order:
    """
    Manual status override. Bypasses the dispatch rule; only the manual
    options are accepted.
    """
    if new_status not in MANUAL_STATUSES:
        raise ValidationError({"status": _("Please choose a valid status.")})

    previous = order.status or OrderStatus.PENDING.value
    if previous == new_status:
        return order

    order.status = new_status
    order.save(update_fields=["status", "updated_at"])
    log_order_event(order, f"Status changed: {previous} → {new_status}", actor=actor)

    event = OrderStatusChanged(
        order_id=order.pk,
        previous_status=str(previous),
        new_status=str(new_status),
    )
    transaction.on_commit(lambda: emit(event))
    return order


def update_order_remarks(order: Order, text: Optional[str]) -> Order:
    order.remarks = clean_note(text)
    order.save(update_fields=["remarks", "updated_at"])
    return order


def update_expected_dispatch_date(order: Order, value: Optional[date]) -> Order:
    order.expected_dispatch_date = value or None
    order.save(update_fields=["expected_dispatch_date", "updated_at"])
    return order


# ============================================================
# Lines
# ============================================================

@transaction.atomic
def add_order_line(order: Order, item: Item, qty, note: Optional[str] = None, *, actor: Any = None) -> OrderLine:
    qty = as_quantity(qty)
    if qty is None or qty <= 0:
        raise ValidationError({"qty": _("Quantity must be greater than zero.")})

    note = clean_note(note)
    line = OrderLine.objects.create(
        order=order,
        item=item,
        qty=qty,
        dealer_rate_at_order=item.dealer_rate,
        line_remarks=note,
    )
    order.recompute_totals(save=True)

    message = f"Added line item: {item.name} ({qty} pcs)"
    if note:
        message += f', Note: "{note}"'
    log_order_event(order, message, actor=actor)
    return line


@transaction.atomic
def delete_order_line(line: OrderLine, *, actor: Any = None) -> None:
    """
    Remove a line; its dispatch events are removed with it.
    """
    order = line.order
    item_name = line.item.name
    qty = line.qty

    line.delete()
    order.recompute_totals(save=True)
    log_order_event(order, f"Deleted line item: {item_name} ({qty} pcs)", actor=actor)


# ============================================================
# Order detail
# ============================================================

@dataclass(frozen=True)
class OrderDetail:
    snapshot: OrderSnapshot
    totals: OrderTotals
    pending_lines: tuple[LineSnapshot, ...]
    dispatched_lines: tuple[LineSnapshot, ...]
    batches: tuple[DispatchBatch, ...]
    summary: DispatchSummary
    overdue: bool


def build_order_detail(snapshot: OrderSnapshot, today: Optional[date] = None) -> OrderDetail:
    pending, done = [], []
    for line in snapshot.lines:
        (done if line_stats(line).is_fully_dispatched else pending).append(line)

    return OrderDetail(
        snapshot=snapshot,
        totals=order_totals(snapshot.lines),
        pending_lines=tuple(pending),
        dispatched_lines=tuple(done),
        batches=tuple(group_dispatch_batches(done, snapshot.events)),
        summary=dispatch_summary(snapshot.events),
        overdue=is_overdue(snapshot, today),
    )


def load_order_detail(order_id, *, store: Optional[OrderStore] = None, today: Optional[date] = None) -> OrderDetail:
    """
    Everything the order page shows. Raises Order.DoesNotExist.
    """
    store = store or OrderStore()
    return build_order_detail(store.load_snapshot(order_id), today)


# ============================================================
# Order list
# ============================================================

@dataclass(frozen=True)
class OrderRow:
    order: Order
    totals: OrderTotals
    bucket: str


@dataclass(frozen=True)
class OrderListSummary:
    count: int
    total_qty: int
    total_value: Decimal


def list_orders(
    *,
    status: Optional[str] = None,
    fulfilment: Optional[str] = None,
    hide_dispatched: bool = False,
    query: Optional[str] = None,
) -> tuple[list[OrderRow], OrderListSummary]:
    """
    Orders newest first with their fulfilment, filtered like the list page.
    """
    qs = (
        Order.objects.with_party_lines()
        .with_status(status)
        .search((query or "").strip())
        .newest_first()
    )
    if hide_dispatched:
        qs = qs.not_dispatched()

    rows = []
    for order in qs:
        totals = order_totals(list(order.lines.all()))
        bucket = fulfilment_bucket(totals.fulfillment_percent)
        if fulfilment and fulfilment != "all" and bucket != fulfilment:
            continue
        rows.append(OrderRow(order=order, totals=totals, bucket=bucket))

    summary = OrderListSummary(
        count=len(rows),
        total_qty=sum(row.order.total_qty or 0 for row in rows),
        total_value=sum((row.order.total_value or Decimal("0.00") for row in rows), Decimal("0.00")),
    )
    return rows, summary

