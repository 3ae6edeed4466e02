# orders/dispatch.py
"""
Pure dispatch / fulfilment rules.

Nothing here touches the database: functions take plain values (or any
object exposing ``qty`` / ``dispatched_qty``) and return small frozen
dataclasses, so the orchestrator and the read pages share one definition
of "dispatched", "pending" and "fully dispatched".
"""
from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Sequence

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import DispatchQuantityError
from .models import OrderStatus

NOT_SET = "Not set"

# Statuses that move to "partially dispatched" once anything is dispatched.
PROGRESSABLE_STATUSES = frozenset(
    {
        OrderStatus.PENDING.value,
        OrderStatus.IN_PRODUCTION.value,
        OrderStatus.PACKED.value,
    }
)

_NON_DIGITS = re.compile(r"\D")


# ============================================================
# Line stats
# ============================================================

@dataclass(frozen=True)
class LineStats:
    ordered: int
    dispatched: int
    pending: int
    raw_dispatched: Any = None
    clamped: bool = False

    @property
    def is_fully_dispatched(self) -> bool:
        return self.ordered > 0 and self.pending == 0


def as_quantity(value) -> Optional[int]:
    """
    Coerce a stored quantity to int; None when missing or not a number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return int(number)


def get_line_stats(ordered, raw_dispatched) -> LineStats:
    """
    Compute ordered / dispatched / pending for one line.

    The stored dispatched quantity is clamped into [0, ordered]; missing or
    non-numeric values count as 0. ``clamped`` is True whenever the stored
    value had to be corrected (a missing value is not a correction).
    Never raises.
    """
    ordered_n = as_quantity(ordered)
    if ordered_n is None or ordered_n < 0:
        ordered_n = 0

    dispatched = as_quantity(raw_dispatched)
    clamped = False
    if dispatched is None:
        clamped = raw_dispatched is not None and str(raw_dispatched).strip() != ""
        dispatched = 0
    elif dispatched < 0:
        dispatched = 0
        clamped = True
    elif dispatched > ordered_n:
        dispatched = ordered_n
        clamped = True

    return LineStats(
        ordered=ordered_n,
        dispatched=dispatched,
        pending=max(ordered_n - dispatched, 0),
        raw_dispatched=raw_dispatched,
        clamped=clamped,
    )


def line_stats(line) -> LineStats:
    return get_line_stats(getattr(line, "qty", 0), getattr(line, "dispatched_qty", None))


# ============================================================
# Delta validation
# ============================================================

def clean_dispatch_delta(raw) -> int:
    """
    Normalize a "dispatch today" input: keep digits only, blank → 0.

    "-5" → 5, "1,200" → 1200, "" → 0.
    """
    if raw is None:
        return 0
    digits = _NON_DIGITS.sub("", str(raw))
    return int(digits) if digits else 0


def validate_dispatch_delta(raw, pending: int, *, item_name: str = "", line_id=None) -> int:
    """
    Return the normalized delta, or raise DispatchQuantityError when it is
    larger than the pending quantity.
    """
    delta = clean_dispatch_delta(raw)
    if delta > pending:
        raise DispatchQuantityError(
            item_name=item_name,
            delta=delta,
            pending=pending,
            line_id=line_id,
        )
    return delta


# ============================================================
# Status transition
# ============================================================

@dataclass(frozen=True)
class DispatchProgress:
    total_ordered: int
    total_dispatched: int
    any_dispatched: bool
    all_full: bool


def summarize_progress(totals: Iterable[tuple[int, int]]) -> DispatchProgress:
    """
    Aggregate ``(ordered, new_total_dispatched)`` pairs for every line.
    """
    total_ordered = 0
    total_dispatched = 0
    any_dispatched = False
    all_full = True

    for ordered, dispatched in totals:
        total_ordered += ordered
        total_dispatched += dispatched
        if dispatched > 0:
            any_dispatched = True
        if dispatched < ordered:
            all_full = False

    return DispatchProgress(
        total_ordered=total_ordered,
        total_dispatched=total_dispatched,
        any_dispatched=any_dispatched,
        all_full=all_full,
    )


def next_dispatch_status(previous: Optional[str], progress: DispatchProgress) -> str:
    """
    Status after a dispatch save.

    - everything dispatched → dispatched
    - something dispatched while pending / in production / packed
      → partially_dispatched
    - otherwise the (normalized) previous status

    A missing previous status counts as pending.
    """
    previous = str(previous or OrderStatus.PENDING.value)

    if progress.all_full and progress.total_ordered > 0:
        return OrderStatus.DISPATCHED.value
    if progress.any_dispatched and previous in PROGRESSABLE_STATUSES:
        return OrderStatus.PARTIALLY_DISPATCHED.value
    return previous


# ============================================================
# Batches
# ============================================================

def dispatch_day(value) -> Optional[date]:
    """
    Local calendar date of a dispatch timestamp (datetime, date or ISO str).
    """
    if value is None:
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            return parse_date(value[:10])
        value = parsed
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    return None


@dataclass(frozen=True)
class DispatchBatch:
    date_label: str
    lines: tuple
    total_pieces: int

    @property
    def dispatch_date(self) -> Optional[date]:
        if self.date_label == NOT_SET:
            return None
        return date.fromisoformat(self.date_label)

    @property
    def heading(self) -> str:
        if self.dispatch_date is None:
            return f"Dispatch date: {NOT_SET}"
        return f"Dispatch date: {self.dispatch_date:%d %b %y}"


def latest_dispatch_days(events: Iterable[Any]) -> dict:
    """
    order_line_id → local date of that line's latest dispatch event.
    """
    latest: dict = {}
    for event in events:
        day = dispatch_day(getattr(event, "dispatched_at", None))
        if day is None:
            continue
        line_id = event.order_line_id
        if line_id not in latest or day > latest[line_id]:
            latest[line_id] = day
    return latest


def group_dispatch_batches(lines: Iterable[Any], events: Iterable[Any]) -> list[DispatchBatch]:
    """
    Group fully dispatched lines by the date of their last dispatch.

    Newest batch first; lines without any dispatch event go to a final
    "Not set" batch.
    """
    latest = latest_dispatch_days(events)
    groups: dict[str, list] = defaultdict(list)

    for line in lines:
        if not line_stats(line).is_fully_dispatched:
            continue
        day = latest.get(line.id)
        groups[day.isoformat() if day else NOT_SET].append(line)

    dated = sorted((key for key in groups if key != NOT_SET), reverse=True)
    keys = dated + ([NOT_SET] if NOT_SET in groups else [])

    return [
        DispatchBatch(
            date_label=key,
            lines=tuple(groups[key]),
            total_pieces=sum(line_stats(line).dispatched for line in groups[key]),
        )
        for key in keys
    ]


# ============================================================
# Summaries used by the order pages
# ============================================================

@dataclass(frozen=True)
class DispatchSummary:
    dates: tuple
    label: str


def dispatch_summary(events: Iterable[Any]) -> DispatchSummary:
    """
    Distinct dispatch dates of an order and a one-line label for them.
    """
    days = sorted(
        {
            day.isoformat()
            for day in (dispatch_day(getattr(e, "dispatched_at", None)) for e in events)
            if day is not None
        }
    )

    if not days:
        label = f"Dispatch dates: {NOT_SET}"
    elif len(days) == 1:
        label = f"Dispatch date: {days[0]}"
    elif len(days) <= 3:
        label = f"Dispatch dates: {', '.join(days)}"
    else:
        label = f"Dispatch dates: {days[0]} – {days[-1]} ({len(days)} batches)"

    return DispatchSummary(dates=tuple(days), label=label)


@dataclass(frozen=True)
class OrderTotals:
    total_ordered: int
    total_dispatched: int
    fulfillment_percent: int
    total_value: Decimal

    @property
    def total_pending(self) -> int:
        return max(self.total_ordered - self.total_dispatched, 0)


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int((Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def order_totals(lines: Sequence[Any]) -> OrderTotals:
    total_ordered = 0
    total_dispatched = 0
    total_value = Decimal("0.00")

    for line in lines:
        stats = line_stats(line)
        total_ordered += stats.ordered
        total_dispatched += stats.dispatched

        line_total = getattr(line, "line_total", None)
        if line_total is None:
            rate = getattr(line, "dealer_rate_at_order", None) or Decimal("0")
            line_total = Decimal(rate) * stats.ordered
        total_value += Decimal(line_total)

    return OrderTotals(
        total_ordered=total_ordered,
        total_dispatched=total_dispatched,
        fulfillment_percent=_percent(total_dispatched, total_ordered),
        total_value=total_value,
    )


FULFILMENT_BUCKETS = ("low", "medium", "high", "complete")


def fulfilment_bucket(percent: int) -> str:
    if percent >= 100:
        return "complete"
    if percent >= 75:
        return "high"
    if percent >= 40:
        return "medium"
    return "low"


def is_overdue(order, today: Optional[date] = None) -> bool:
    expected = getattr(order, "expected_dispatch_date", None)
    if not expected:
        return False
    today = today or timezone.localdate()
    return expected < today and getattr(order, "status", None) != OrderStatus.DISPATCHED
