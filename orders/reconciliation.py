# orders/reconciliation.py
"""
Dispatch reconciliation for one order.

A save happens in two phases:

1. ``plan_dispatch`` validates every "dispatch today" quantity against the
   snapshot and stages the writes (events, line updates, status, log
   lines). Any validation error aborts here, before anything is written.
2. ``apply_dispatch_plan`` writes the staged changes through an
   ``OrderStore`` in a fixed order:

       dispatch events → order lines → order status → activity log

   The steps are not wrapped in one transaction. A failing step raises
   DispatchPersistenceError; steps that already ran stay committed. A save
   carrying a ``submission_id`` can be retried: events already stored under
   that id are not inserted again, and the retried plan takes its line
   totals from those stored events.

``reconcile_dispatch`` runs both phases and returns a freshly loaded
snapshot.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Mapping, Optional

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError
from django.utils import timezone
from django.utils.dateparse import parse_date

from core.domain.dispatcher import emit
from .dispatch import (
    DispatchProgress,
    as_quantity,
    line_stats,
    next_dispatch_status,
    summarize_progress,
    validate_dispatch_delta,
)
from .domain import DispatchRecorded, OrderStatusChanged
from .exceptions import DispatchPersistenceError
from .models import OrderStatus
from .snapshot import OrderSnapshot
from .store import OrderStore

logger = logging.getLogger(__name__)

STEP_EVENTS = "dispatch_events"
STEP_LINES = "order_lines"
STEP_STATUS = "order_status"
STEP_LOGS = "order_logs"

STEP_MESSAGES = {
    STEP_EVENTS: "Could not save dispatch events",
    STEP_LINES: "Could not update order lines",
    STEP_STATUS: "Could not update order status",
    STEP_LOGS: "Could not write activity log",
}


@dataclass(frozen=True)
class StagedEvent:
    order_line_id: int
    item_name: str
    dispatched_qty: int
    dispatched_at: datetime


@dataclass(frozen=True)
class LineUpdate:
    order_line_id: int
    item_name: str
    dispatched_qty: int
    line_remarks: Optional[str]


@dataclass(frozen=True)
class DispatchPlan:
    order_id: int
    dispatch_date: date
    events: tuple[StagedEvent, ...]
    line_updates: tuple[LineUpdate, ...]
    logs: tuple[str, ...]
    previous_status: str
    new_status: str
    progress: DispatchProgress
    submission_id: Any = None
    clamped_line_ids: tuple[int, ...] = ()

    @property
    def status_changed(self) -> bool:
        return self.new_status != self.previous_status

    @property
    def is_empty(self) -> bool:
        return not (self.events or self.line_updates or self.status_changed)


@dataclass(frozen=True)
class DispatchResult:
    plan: DispatchPlan
    snapshot: OrderSnapshot
    events_skipped: bool = False


# ============================================================
# Helpers
# ============================================================

def clean_note(value) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def coerce_dispatch_date(value) -> date:
    if isinstance(value, datetime):
        return timezone.localtime(value).date() if timezone.is_aware(value) else value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = parse_date(value.strip())
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValidationError("Please choose a valid dispatch date.", code="invalid_dispatch_date")
        return parsed
    raise ValidationError("Please choose a dispatch date.", code="missing_dispatch_date")


def dispatch_timestamp(day: date) -> datetime:
    """
    Midnight of the dispatch date in the current time zone.
    """
    return timezone.make_aware(datetime.combine(day, time.min))


def _keyed(mapping: Optional[Mapping]) -> dict:
    return {str(k): v for k, v in (mapping or {}).items()}


def _stored_submission(snapshot: OrderSnapshot, submission_id) -> dict:
    """
    Quantities per line already stored under ``submission_id``.
    Empty when the submission is new.
    """
    if submission_id is None:
        return {}
    stored: dict = {}
    for event in snapshot.events:
        if event.submission_id is not None and str(event.submission_id) == str(submission_id):
            stored[event.order_line_id] = stored.get(event.order_line_id, 0) + event.dispatched_qty
    return stored


def _ledger_total(snapshot: OrderSnapshot, line_id) -> int:
    return sum(event.dispatched_qty for event in snapshot.events if event.order_line_id == line_id)


# ============================================================
# Planning
# ============================================================

def plan_dispatch(
    snapshot: OrderSnapshot,
    dispatch_date,
    deltas: Optional[Mapping] = None,
    notes: Optional[Mapping] = None,
    submission_id=None,
) -> DispatchPlan:
    """
    Validate the requested quantities against ``snapshot`` and stage the
    writes. Raises ValidationError (DispatchQuantityError for quantities)
    on the first problem found.

    When ``submission_id`` already has events in the snapshot the plan
    resumes that submission instead of dispatching again.
    """
    day = coerce_dispatch_date(dispatch_date)
    dispatched_at = dispatch_timestamp(day)
    day_label = day.strftime("%d %b %y")

    deltas = _keyed(deltas)
    notes = _keyed(notes)
    resumed = _stored_submission(snapshot, submission_id)
    if resumed:
        logger.info(
            "Order %s: submission %s already has stored events, resuming from them",
            snapshot.id,
            submission_id,
        )

    events: list[StagedEvent] = []
    updates: list[LineUpdate] = []
    logs: list[str] = []
    totals: list[tuple[int, int]] = []
    clamped: list[int] = []

    for line in snapshot.lines:
        key = str(line.id)
        stats = line_stats(line)
        if stats.clamped:
            clamped.append(line.id)
            logger.warning(
                "Order %s line %s: stored dispatched quantity %r clamped to %s (ordered %s)",
                snapshot.id,
                line.id,
                stats.raw_dispatched,
                stats.dispatched,
                stats.ordered,
            )

        if resumed:
            # Quantities come from the stored events; the line may already hold them.
            delta = resumed.get(line.id, 0)
            new_total = min(_ledger_total(snapshot, line.id), stats.ordered) if delta else stats.dispatched
        else:
            delta = validate_dispatch_delta(
                deltas.get(key),
                stats.pending,
                item_name=line.item_name,
                line_id=line.id,
            )
            new_total = stats.dispatched + delta

        if delta > 0:
            events.append(
                StagedEvent(
                    order_line_id=line.id,
                    item_name=line.item_name,
                    dispatched_qty=delta,
                    dispatched_at=dispatched_at,
                )
            )
            logs.append(f"Dispatched {delta} pcs of {line.item_name} on {day_label}.")

        original_note = clean_note(line.line_remarks)
        new_note = clean_note(notes[key]) if key in notes else original_note
        note_changed = new_note != original_note

        stored = 0 if line.dispatched_qty is None else as_quantity(line.dispatched_qty)
        dispatch_changed = new_total != stored

        if note_changed or dispatch_changed:
            updates.append(
                LineUpdate(
                    order_line_id=line.id,
                    item_name=line.item_name,
                    dispatched_qty=new_total,
                    line_remarks=new_note,
                )
            )
            if note_changed:
                logs.append(
                    f'Updated note for {line.item_name}: "{original_note or "-"}" → "{new_note or "-"}"'
                )

        totals.append((stats.ordered, new_total))

    progress = summarize_progress(totals)
    previous_status = str(snapshot.status or OrderStatus.PENDING.value)
    new_status = next_dispatch_status(previous_status, progress)
    if new_status != previous_status:
        logs.append(f"Status changed: {previous_status} → {new_status}")

    return DispatchPlan(
        order_id=snapshot.id,
        dispatch_date=day,
        events=tuple(events),
        line_updates=tuple(updates),
        logs=tuple(logs),
        previous_status=previous_status,
        new_status=new_status,
        progress=progress,
        submission_id=submission_id,
        clamped_line_ids=tuple(clamped),
    )


# ============================================================
# Applying
# ============================================================

def _fail(step: str, order_id, exc: Exception):
    logger.error("Dispatch save for order %s failed at %s: %s", order_id, step, exc)
    return DispatchPersistenceError(step, f"{STEP_MESSAGES[step]}: {exc}")


def apply_dispatch_plan(plan: DispatchPlan, store: OrderStore, *, actor=None) -> bool:
    """
    Persist ``plan`` step by step. Returns True when the event insert was
    skipped because the submission had already been stored.
    """
    events_skipped = False

    if plan.events:
        try:
            if store.has_submission(plan.order_id, plan.submission_id):
                events_skipped = True
                logger.info(
                    "Order %s: submission %s already stored, skipping %s event(s)",
                    plan.order_id,
                    plan.submission_id,
                    len(plan.events),
                )
            else:
                store.insert_dispatch_events(plan.order_id, plan.events, submission_id=plan.submission_id)
        except (DatabaseError, ObjectDoesNotExist) as exc:
            raise _fail(STEP_EVENTS, plan.order_id, exc) from exc

    try:
        for update in plan.line_updates:
            store.update_line(
                update.order_line_id,
                dispatched_qty=update.dispatched_qty,
                line_remarks=update.line_remarks,
            )
    except (DatabaseError, ObjectDoesNotExist) as exc:
        raise _fail(STEP_LINES, plan.order_id, exc) from exc

    if plan.status_changed:
        try:
            store.update_order(plan.order_id, status=plan.new_status)
        except (DatabaseError, ObjectDoesNotExist) as exc:
            raise _fail(STEP_STATUS, plan.order_id, exc) from exc

    if plan.logs:
        try:
            store.insert_logs(plan.order_id, plan.logs, actor=actor)
        except (DatabaseError, ObjectDoesNotExist) as exc:
            raise _fail(STEP_LOGS, plan.order_id, exc) from exc

    return events_skipped


def _emit_plan_events(plan: DispatchPlan, events_skipped: bool) -> None:
    if not events_skipped:
        for staged in plan.events:
            emit(
                DispatchRecorded(
                    order_id=plan.order_id,
                    order_line_id=staged.order_line_id,
                    item_name=staged.item_name,
                    quantity=staged.dispatched_qty,
                    dispatch_date=plan.dispatch_date,
                )
            )
    if plan.status_changed:
        emit(
            OrderStatusChanged(
                order_id=plan.order_id,
                previous_status=plan.previous_status,
                new_status=plan.new_status,
                automatic=True,
            )
        )


def reconcile_dispatch(
    order_id,
    dispatch_date,
    deltas: Optional[Mapping] = None,
    notes: Optional[Mapping] = None,
    *,
    submission_id=None,
    actor=None,
    store: Optional[OrderStore] = None,
) -> DispatchResult:
    """
    Load the order, plan the dispatch, write it, and reload.

    Raises Order.DoesNotExist, ValidationError or DispatchPersistenceError.
    """
    store = store or OrderStore()
    snapshot = store.load_snapshot(order_id)

    plan = plan_dispatch(
        snapshot,
        dispatch_date,
        deltas,
        notes,
        submission_id=submission_id,
    )
    events_skipped = apply_dispatch_plan(plan, store, actor=actor)

    logger.info(
        "Order %s dispatch saved: %s event(s), %s line update(s), status %s → %s",
        plan.order_id,
        0 if events_skipped else len(plan.events),
        len(plan.line_updates),
        plan.previous_status,
        plan.new_status,
    )
    _emit_plan_events(plan, events_skipped)

    return DispatchResult(
        plan=plan,
        snapshot=store.load_snapshot(order_id),
        events_skipped=events_skipped,
    )
