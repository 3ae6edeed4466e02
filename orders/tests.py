import json
import uuid
from datetime import date, datetime
from datetime import timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from catalog.models import Item
from core.domain.dispatcher import register_handler, unregister_handler
from orders import analytics, services
from orders.dispatch import (
    NOT_SET,
    clean_dispatch_delta,
    dispatch_summary,
    fulfilment_bucket,
    get_line_stats,
    group_dispatch_batches,
    next_dispatch_status,
    order_totals,
    summarize_progress,
    validate_dispatch_delta,
)
from orders.domain import DispatchRecorded, OrderPunched, OrderStatusChanged
from orders.exceptions import DispatchPersistenceError, DispatchQuantityError
from orders.models import DispatchEvent, Order, OrderLine, OrderLog
from orders.reconciliation import dispatch_timestamp, plan_dispatch, reconcile_dispatch
from orders.store import OrderStore
from parties.models import Party


def _line(id, qty, dispatched):
    return SimpleNamespace(id=id, qty=qty, dispatched_qty=dispatched)


def _event(line_id, when):
    return SimpleNamespace(order_line_id=line_id, dispatched_at=when)


# ===================================================================
# Pure rules
# ===================================================================

class LineStatsTests(SimpleTestCase):
    def test_regular_line(self):
        stats = get_line_stats(20, 5)
        self.assertEqual((stats.ordered, stats.dispatched, stats.pending), (20, 5, 15))
        self.assertFalse(stats.clamped)

    def test_missing_dispatched_counts_as_zero_without_flag(self):
        for raw in (None, "", "  "):
            stats = get_line_stats(10, raw)
            self.assertEqual(stats.dispatched, 0)
            self.assertEqual(stats.pending, 10)
            self.assertFalse(stats.clamped)

    def test_non_numeric_is_zero_and_flagged(self):
        stats = get_line_stats(10, "abc")
        self.assertEqual(stats.dispatched, 0)
        self.assertTrue(stats.clamped)
        self.assertEqual(stats.raw_dispatched, "abc")

    def test_negative_clamps_to_zero(self):
        stats = get_line_stats(10, -4)
        self.assertEqual((stats.dispatched, stats.pending), (0, 10))
        self.assertTrue(stats.clamped)

    def test_over_dispatched_clamps_to_ordered(self):
        stats = get_line_stats(10, 14)
        self.assertEqual((stats.dispatched, stats.pending), (10, 0))
        self.assertTrue(stats.clamped)
        self.assertTrue(stats.is_fully_dispatched)

    def test_invalid_ordered_counts_as_zero(self):
        stats = get_line_stats(-3, 2)
        self.assertEqual((stats.ordered, stats.dispatched, stats.pending), (0, 0, 0))
        self.assertFalse(stats.is_fully_dispatched)


class DispatchDeltaTests(SimpleTestCase):
    def test_cleaning_keeps_digits_only(self):
        self.assertEqual(clean_dispatch_delta("-5"), 5)
        self.assertEqual(clean_dispatch_delta("1,200"), 1200)
        self.assertEqual(clean_dispatch_delta(" 7 pcs"), 7)
        self.assertEqual(clean_dispatch_delta(""), 0)
        self.assertEqual(clean_dispatch_delta(None), 0)
        self.assertEqual(clean_dispatch_delta(12), 12)

    def test_delta_equal_to_pending_is_allowed(self):
        self.assertEqual(validate_dispatch_delta("40", 40, item_name="Mini Jeep"), 40)

    def test_delta_above_pending_raises(self):
        with self.assertRaises(DispatchQuantityError) as ctx:
            validate_dispatch_delta("50", 40, item_name="Mini Jeep", line_id=9)

        exc = ctx.exception
        self.assertIsInstance(exc, ValidationError)
        self.assertEqual(exc.messages, ['Line "Mini Jeep": dispatching 50 pcs exceeds pending 40 pcs.'])
        self.assertEqual((exc.delta, exc.pending, exc.line_id), (50, 40, 9))


class StatusRuleTests(SimpleTestCase):
    def test_everything_dispatched(self):
        progress = summarize_progress([(10, 10), (5, 5)])
        self.assertTrue(progress.all_full)
        self.assertEqual(next_dispatch_status("packed", progress), "dispatched")
        self.assertEqual(next_dispatch_status("cancelled", progress), "dispatched")

    def test_partial_from_progressable_statuses(self):
        progress = summarize_progress([(10, 3), (5, 0)])
        for previous in ("pending", "in_production", "packed"):
            self.assertEqual(next_dispatch_status(previous, progress), "partially_dispatched")

    def test_partial_from_other_statuses_is_unchanged(self):
        progress = summarize_progress([(10, 3)])
        self.assertEqual(next_dispatch_status("cancelled", progress), "cancelled")
        self.assertEqual(next_dispatch_status("submitted", progress), "submitted")

    def test_nothing_dispatched_is_unchanged(self):
        progress = summarize_progress([(10, 0)])
        self.assertFalse(progress.any_dispatched)
        self.assertEqual(next_dispatch_status("packed", progress), "packed")

    def test_missing_previous_status_counts_as_pending(self):
        self.assertEqual(next_dispatch_status(None, summarize_progress([(10, 0)])), "pending")
        self.assertEqual(
            next_dispatch_status("", summarize_progress([(10, 1)])),
            "partially_dispatched",
        )

    def test_nothing_ordered_never_becomes_dispatched(self):
        progress = summarize_progress([])
        self.assertTrue(progress.all_full)
        self.assertEqual(next_dispatch_status("packed", progress), "packed")


@override_settings(TIME_ZONE="Asia/Kolkata")
class BatchGrouperTests(SimpleTestCase):
    def test_groups_by_latest_dispatch_date(self):
        lines = [
            _line(1, 5, 5),
            _line(2, 3, 3),
            _line(3, 2, 2),
            _line(4, 4, 1),  # still pending
        ]
        events = [
            _event(1, date(2025, 3, 5)),
            _event(1, date(2025, 3, 8)),
            _event(2, "2025-03-05"),
            _event(4, date(2025, 3, 9)),
        ]

        batches = group_dispatch_batches(lines, events)

        self.assertEqual([b.date_label for b in batches], ["2025-03-08", "2025-03-05", NOT_SET])
        self.assertEqual([[line.id for line in b.lines] for b in batches], [[1], [2], [3]])
        self.assertEqual([b.total_pieces for b in batches], [5, 3, 2])
        self.assertEqual(batches[0].heading, "Dispatch date: 08 Mar 25")
        self.assertEqual(batches[-1].heading, "Dispatch date: Not set")

    def test_aware_timestamps_use_local_date(self):
        # 20:00 UTC on the 4th is already the 5th in India.
        when = datetime(2025, 3, 4, 20, 0, tzinfo=dt_timezone.utc)
        batches = group_dispatch_batches([_line(1, 2, 2)], [_event(1, when)])
        self.assertEqual(batches[0].date_label, "2025-03-05")

    def test_no_fully_dispatched_lines(self):
        self.assertEqual(group_dispatch_batches([_line(1, 2, 0)], []), [])


class OrderSummaryHelperTests(SimpleTestCase):
    def test_dispatch_summary_labels(self):
        self.assertEqual(dispatch_summary([]).label, "Dispatch dates: Not set")
        self.assertEqual(
            dispatch_summary([_event(1, date(2025, 3, 5)), _event(2, date(2025, 3, 5))]).label,
            "Dispatch date: 2025-03-05",
        )
        three = [_event(1, date(2025, 3, d)) for d in (9, 1, 5)]
        self.assertEqual(
            dispatch_summary(three).label,
            "Dispatch dates: 2025-03-01, 2025-03-05, 2025-03-09",
        )
        five = [_event(1, date(2025, 3, d)) for d in (1, 2, 3, 4, 5)]
        self.assertEqual(
            dispatch_summary(five).label,
            "Dispatch dates: 2025-03-01 – 2025-03-05 (5 batches)",
        )

    def test_fulfilment_buckets(self):
        self.assertEqual(fulfilment_bucket(0), "low")
        self.assertEqual(fulfilment_bucket(39), "low")
        self.assertEqual(fulfilment_bucket(40), "medium")
        self.assertEqual(fulfilment_bucket(74), "medium")
        self.assertEqual(fulfilment_bucket(75), "high")
        self.assertEqual(fulfilment_bucket(99), "high")
        self.assertEqual(fulfilment_bucket(100), "complete")

    def test_order_totals(self):
        lines = [
            SimpleNamespace(qty=10, dispatched_qty=12, line_total=Decimal("100.00")),
            SimpleNamespace(qty=20, dispatched_qty=3, line_total=None, dealer_rate_at_order=Decimal("2.50")),
        ]
        totals = order_totals(lines)
        self.assertEqual(totals.total_ordered, 30)
        self.assertEqual(totals.total_dispatched, 13)
        self.assertEqual(totals.fulfillment_percent, 43)
        self.assertEqual(totals.total_value, Decimal("150.00"))

    def test_order_totals_empty(self):
        self.assertEqual(order_totals([]).fulfillment_percent, 0)


# ===================================================================
# Database fixtures
# ===================================================================

class OrdersTestCase(TestCase):
    def setUp(self):
        self.party = Party.objects.create(name="Balaji Traders", city="Pune")
        self.other_party = Party.objects.create(name="Shree Toys", city="Nagpur")

        self.jeep = Item.objects.create(
            name="Mini Jeep", category="jeep", company="Tycoon", dealer_rate=Decimal("450.00")
        )
        self.bike = Item.objects.create(
            name="Racer Bike", category="bike", company="Tycoon", dealer_rate=Decimal("300.00")
        )
        self.spare = Item.objects.create(
            name="Wheel Set", category="Spare Parts", company="Tycoon", dealer_rate=Decimal("20.00")
        )
        self.rival = Item.objects.create(
            name="Rival Car", category="car", company="OtherCo", dealer_rate=Decimal("500.00")
        )
        self.mystery = Item.objects.create(
            name="Mystery Box", category="", company="Tycoon", dealer_rate=Decimal("100.00")
        )

    def make_order(self, lines, *, status="pending", party=None, **kwargs):
        order = Order.objects.create(party=party or self.party, status=status, **kwargs)
        created = []
        for item, qty, dispatched in lines:
            created.append(
                OrderLine.objects.create(
                    order=order,
                    item=item,
                    qty=qty,
                    dispatched_qty=dispatched,
                    dealer_rate_at_order=item.dealer_rate,
                )
            )
        order.recompute_totals(save=True)
        return order, created

    def add_event(self, line, qty, day):
        return DispatchEvent.objects.create(
            order=line.order,
            order_line=line,
            dispatched_qty=qty,
            dispatched_at=dispatch_timestamp(day),
        )

    def log_messages(self, order):
        return list(OrderLog.objects.filter(order=order).order_by("id").values_list("message", flat=True))


class FailingStore(OrderStore):
    """
    Store that breaks at one write step.
    """

    def __init__(self, fail_on):
        self.fail_on = fail_on

    def insert_dispatch_events(self, *args, **kwargs):
        if self.fail_on == "events":
            raise DatabaseError("disk I/O error")
        return super().insert_dispatch_events(*args, **kwargs)

    def update_line(self, *args, **kwargs):
        if self.fail_on == "lines":
            raise DatabaseError("database is locked")
        return super().update_line(*args, **kwargs)

    def update_order(self, *args, **kwargs):
        if self.fail_on == "status":
            raise DatabaseError("database is locked")
        return super().update_order(*args, **kwargs)

    def insert_logs(self, *args, **kwargs):
        if self.fail_on == "logs":
            raise DatabaseError("database is locked")
        return super().insert_logs(*args, **kwargs)

    def load_events(self, order_id):
        if self.fail_on == "read_events":
            raise DatabaseError("no such table")
        return super().load_events(order_id)


# ===================================================================
# Reconciliation
# ===================================================================

class ReconcileDispatchTests(OrdersTestCase):
    def test_rejects_delta_above_pending_without_writing(self):
        order, (line,) = self.make_order([(self.jeep, 100, 60)], status="packed")

        with self.assertRaises(DispatchQuantityError) as ctx:
            reconcile_dispatch(order.pk, date(2025, 3, 5), {line.pk: "50"})

        self.assertEqual(
            ctx.exception.messages,
            ['Line "Mini Jeep": dispatching 50 pcs exceeds pending 40 pcs.'],
        )
        line.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(line.dispatched_qty, 60)
        self.assertEqual(order.status, "packed")
        self.assertFalse(DispatchEvent.objects.exists())
        self.assertFalse(OrderLog.objects.exists())

    def test_zero_delta_on_fully_dispatched_order_closes_it(self):
        order, lines = self.make_order([(self.jeep, 10, 10), (self.bike, 5, 5)], status="packed")

        result = reconcile_dispatch(order.pk, date(2025, 3, 5), {})

        order.refresh_from_db()
        self.assertEqual(order.status, "dispatched")
        self.assertEqual(self.log_messages(order), ["Status changed: packed → dispatched"])
        self.assertFalse(DispatchEvent.objects.exists())
        self.assertEqual(result.plan.line_updates, ())
        self.assertEqual(result.snapshot.status, "dispatched")

    def test_partial_dispatch(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)], status="pending")

        result = reconcile_dispatch(order.pk, date(2025, 3, 5), {str(line.pk): "5"})

        event = DispatchEvent.objects.get()
        self.assertEqual(event.order_line, line)
        self.assertEqual(event.dispatched_qty, 5)
        self.assertEqual(timezone.localtime(event.dispatched_at).date(), date(2025, 3, 5))

        line.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(line.dispatched_qty, 5)
        self.assertEqual(order.status, "partially_dispatched")
        self.assertEqual(
            self.log_messages(order),
            [
                "Dispatched 5 pcs of Mini Jeep on 05 Mar 25.",
                "Status changed: pending → partially_dispatched",
            ],
        )

        snap = result.snapshot
        self.assertEqual(len(snap.events), 1)
        self.assertEqual(snap.logs[0].message, "Status changed: pending → partially_dispatched")
        self.assertEqual(snap.line(line.pk).dispatched_qty, 5)

    def test_note_change_is_logged(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])

        reconcile_dispatch(order.pk, date(2025, 3, 5), {}, {line.pk: "  fragile  "})

        line.refresh_from_db()
        self.assertEqual(line.line_remarks, "fragile")
        self.assertEqual(self.log_messages(order), ['Updated note for Mini Jeep: "-" → "fragile"'])

        reconcile_dispatch(order.pk, date(2025, 3, 5), {}, {line.pk: ""})
        line.refresh_from_db()
        self.assertIsNone(line.line_remarks)
        self.assertEqual(self.log_messages(order)[-1], 'Updated note for Mini Jeep: "fragile" → "-"')

    def test_nothing_changed_writes_nothing(self):
        order, (line,) = self.make_order([(self.jeep, 20, 4)], status="partially_dispatched")

        result = reconcile_dispatch(order.pk, date(2025, 3, 5), {line.pk: "0"})

        self.assertTrue(result.plan.is_empty)
        self.assertFalse(OrderLog.objects.exists())

    def test_missing_dispatch_date(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])

        with self.assertRaises(ValidationError) as ctx:
            reconcile_dispatch(order.pk, None, {line.pk: "5"})
        self.assertEqual(ctx.exception.messages, ["Please choose a dispatch date."])
        self.assertFalse(DispatchEvent.objects.exists())

    def test_unknown_order(self):
        with self.assertRaises(Order.DoesNotExist):
            reconcile_dispatch(987654, date(2025, 3, 5), {})

    def test_corrupt_stored_quantity_is_reported_and_healed(self):
        order, (line,) = self.make_order([(self.jeep, 20, 25)], status="packed")

        with self.assertLogs("orders.reconciliation", level="WARNING") as logs:
            result = reconcile_dispatch(order.pk, date(2025, 3, 5), {})

        self.assertTrue(any("clamped" in message for message in logs.output))
        self.assertEqual(result.plan.clamped_line_ids, (line.pk,))
        line.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(line.dispatched_qty, 20)
        self.assertEqual(order.status, "dispatched")

    def test_emits_domain_events(self):
        received = []

        def collect(event):
            received.append(event)

        register_handler(DispatchRecorded)(collect)
        register_handler(OrderStatusChanged)(collect)
        self.addCleanup(unregister_handler, DispatchRecorded, collect)
        self.addCleanup(unregister_handler, OrderStatusChanged, collect)

        order, (line,) = self.make_order([(self.jeep, 5, 0)])
        reconcile_dispatch(order.pk, date(2025, 3, 5), {line.pk: 5})

        self.assertEqual([type(e) for e in received], [DispatchRecorded, OrderStatusChanged])
        self.assertEqual(received[0].quantity, 5)
        self.assertEqual(received[1].new_status, "dispatched")
        self.assertTrue(received[1].automatic)

    def test_plan_does_not_touch_the_database(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])
        snapshot = OrderStore().load_snapshot(order.pk)

        with self.assertNumQueries(0):
            plan = plan_dispatch(snapshot, "2025-03-05", {line.pk: "5"})

        self.assertEqual(len(plan.events), 1)
        self.assertEqual(plan.new_status, "partially_dispatched")


class DispatchPersistenceTests(OrdersTestCase):
    def test_failure_stops_later_steps_and_keeps_earlier_ones(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])

        with self.assertRaises(DispatchPersistenceError) as ctx:
            reconcile_dispatch(
                order.pk,
                date(2025, 3, 5),
                {line.pk: "5"},
                store=FailingStore("lines"),
            )

        self.assertEqual(ctx.exception.step, "order_lines")
        self.assertIn("database is locked", ctx.exception.message)

        self.assertEqual(DispatchEvent.objects.count(), 1)
        line.refresh_from_db()
        order.refresh_from_db()
        self.assertEqual(line.dispatched_qty, 0)
        self.assertEqual(order.status, "pending")
        self.assertFalse(OrderLog.objects.exists())

    def test_each_step_reports_its_name(self):
        for fail_on, step in (
            ("events", "dispatch_events"),
            ("status", "order_status"),
            ("logs", "order_logs"),
        ):
            with self.subTest(step=step):
                order, (line,) = self.make_order([(self.jeep, 20, 0)])
                with self.assertRaises(DispatchPersistenceError) as ctx:
                    reconcile_dispatch(
                        order.pk,
                        date(2025, 3, 5),
                        {line.pk: "5"},
                        store=FailingStore(fail_on),
                    )
                self.assertEqual(ctx.exception.step, step)

    def test_retry_with_same_submission_does_not_duplicate_events(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])
        submission = uuid.uuid4()

        with self.assertRaises(DispatchPersistenceError):
            reconcile_dispatch(
                order.pk,
                date(2025, 3, 5),
                {line.pk: "5"},
                submission_id=submission,
                store=FailingStore("lines"),
            )

        result = reconcile_dispatch(
            order.pk,
            date(2025, 3, 5),
            {line.pk: "5"},
            submission_id=submission,
        )

        self.assertTrue(result.events_skipped)
        self.assertEqual(DispatchEvent.objects.filter(order=order).count(), 1)
        line.refresh_from_db()
        self.assertEqual(line.dispatched_qty, 5)
        self.assertEqual(
            self.log_messages(order),
            [
                "Dispatched 5 pcs of Mini Jeep on 05 Mar 25.",
                "Status changed: pending → partially_dispatched",
            ],
        )

    def _retry_after_failure(self, fail_on, qty, delta):
        order, (line,) = self.make_order([(self.jeep, qty, 0)])
        submission = uuid.uuid4()

        with self.assertRaises(DispatchPersistenceError):
            reconcile_dispatch(
                order.pk,
                date(2025, 3, 5),
                {line.pk: delta},
                submission_id=submission,
                store=FailingStore(fail_on),
            )

        result = reconcile_dispatch(
            order.pk,
            date(2025, 3, 5),
            {line.pk: delta},
            submission_id=submission,
        )
        line.refresh_from_db()
        order.refresh_from_db()
        return order, line, result

    def event_total(self, line):
        return sum(DispatchEvent.objects.filter(order_line=line).values_list("dispatched_qty", flat=True))

    def test_retry_after_status_failure_keeps_line_in_step_with_events(self):
        order, line, result = self._retry_after_failure("status", 20, "5")

        self.assertTrue(result.events_skipped)
        self.assertEqual(DispatchEvent.objects.filter(order=order).count(), 1)
        self.assertEqual(line.dispatched_qty, 5)
        self.assertEqual(self.event_total(line), 5)
        self.assertEqual(order.status, "partially_dispatched")
        self.assertEqual(
            self.log_messages(order),
            [
                "Dispatched 5 pcs of Mini Jeep on 05 Mar 25.",
                "Status changed: pending → partially_dispatched",
            ],
        )

    def test_retry_after_logs_failure_keeps_line_in_step_with_events(self):
        order, line, result = self._retry_after_failure("logs", 20, "5")

        self.assertTrue(result.events_skipped)
        self.assertEqual(line.dispatched_qty, 5)
        self.assertEqual(self.event_total(line), 5)
        self.assertEqual(order.status, "partially_dispatched")
        self.assertEqual(self.log_messages(order), ["Dispatched 5 pcs of Mini Jeep on 05 Mar 25."])

    def test_retry_of_full_dispatch_is_not_rejected_as_over_pending(self):
        order, line, result = self._retry_after_failure("status", 20, "20")

        self.assertTrue(result.events_skipped)
        self.assertEqual(line.dispatched_qty, 20)
        self.assertEqual(self.event_total(line), 20)
        self.assertEqual(order.status, "dispatched")

    def test_retry_leaves_lines_outside_the_submission_alone(self):
        order, (line, other) = self.make_order([(self.jeep, 20, 0), (self.bike, 10, 3)])
        submission = uuid.uuid4()

        with self.assertRaises(DispatchPersistenceError):
            reconcile_dispatch(
                order.pk,
                date(2025, 3, 5),
                {line.pk: "5"},
                submission_id=submission,
                store=FailingStore("status"),
            )
        reconcile_dispatch(order.pk, date(2025, 3, 5), {line.pk: "5"}, submission_id=submission)

        line.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual(line.dispatched_qty, 5)
        self.assertEqual(other.dispatched_qty, 3)

    def test_read_failures_fall_back_to_empty_lists(self):
        order, (line,) = self.make_order([(self.jeep, 2, 2)])
        self.add_event(line, 2, date(2025, 3, 5))

        with self.assertLogs("orders.store", level="ERROR"):
            detail = services.load_order_detail(order.pk, store=FailingStore("read_events"))

        self.assertEqual(detail.snapshot.events, ())
        self.assertEqual(detail.summary.label, "Dispatch dates: Not set")
        self.assertEqual(detail.batches[0].date_label, NOT_SET)


# ===================================================================
# Order services
# ===================================================================

class PunchOrderTests(OrdersTestCase):
    def test_punch_creates_lines_totals_and_log(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            order = services.punch_order(
                party=self.party,
                order_date=date(2025, 3, 1),
                remarks="  urgent  ",
                lines=[
                    {"item": self.jeep, "qty": 10, "note": "blue"},
                    {"item": self.bike, "qty": "5"},
                    {"item": None, "qty": 3},
                    {"item": self.spare, "qty": 0},
                ],
            )

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(order.order_code, "TY-2025-0001")
        self.assertEqual(order.status, "submitted")
        self.assertEqual(order.remarks, "urgent")
        self.assertEqual(order.lines.count(), 2)
        self.assertEqual(order.total_qty, 15)
        self.assertEqual(order.total_value, Decimal("6000.00"))
        self.assertEqual(order.lines.get(item=self.jeep).line_remarks, "blue")
        self.assertEqual(self.log_messages(order), ["Order punched with 2 line(s) (15 pcs)."])

    def test_rate_is_frozen_at_punch_time(self):
        order = services.punch_order(party=self.party, lines=[{"item": self.jeep, "qty": 2}])
        self.jeep.dealer_rate = Decimal("999.00")
        self.jeep.save()

        line = order.lines.get()
        self.assertEqual(line.dealer_rate_at_order, Decimal("450.00"))
        self.assertEqual(line.line_total, Decimal("900.00"))

    def test_requires_a_valid_line(self):
        with self.assertRaises(ValidationError):
            services.punch_order(party=self.party, lines=[{"item": self.jeep, "qty": 0}])
        self.assertFalse(Order.objects.exists())

    def test_only_draft_or_submitted(self):
        with self.assertRaises(ValidationError):
            services.punch_order(
                party=self.party,
                lines=[{"item": self.jeep, "qty": 1}],
                status="dispatched",
            )

    def test_emits_order_punched(self):
        received = []
        register_handler(OrderPunched)(received.append)
        self.addCleanup(unregister_handler, OrderPunched, received.append)

        with self.captureOnCommitCallbacks(execute=True):
            order = services.punch_order(
                party=self.party,
                lines=[{"item": self.jeep, "qty": 1}],
                status="draft",
            )

        self.assertEqual(received[0].order_id, order.pk)
        self.assertEqual(received[0].line_count, 1)


class OrderEditTests(OrdersTestCase):
    def test_manual_status_change_is_logged(self):
        order, _ = self.make_order([(self.jeep, 10, 0)], status="pending")

        services.set_order_status(order, "in_production")
        services.set_order_status(order, "in_production")

        order.refresh_from_db()
        self.assertEqual(order.status, "in_production")
        self.assertEqual(self.log_messages(order), ["Status changed: pending → in_production"])

    def test_manual_status_rejects_system_statuses(self):
        order, _ = self.make_order([(self.jeep, 10, 0)])
        for status in ("draft", "submitted", "shipped"):
            with self.assertRaises(ValidationError):
                services.set_order_status(order, status)

    def test_manual_override_bypasses_the_dispatch_rule(self):
        order, _ = self.make_order([(self.jeep, 10, 10)], status="dispatched")
        services.set_order_status(order, "pending")
        order.refresh_from_db()
        self.assertEqual(order.status, "pending")

    def test_remarks_and_expected_date_are_not_logged(self):
        order, _ = self.make_order([(self.jeep, 10, 0)])

        services.update_order_remarks(order, "   ")
        services.update_expected_dispatch_date(order, date(2025, 4, 1))

        order.refresh_from_db()
        self.assertIsNone(order.remarks)
        self.assertEqual(order.expected_dispatch_date, date(2025, 4, 1))
        self.assertEqual(self.log_messages(order), [])

    def test_add_line_logs_and_recomputes_totals(self):
        order, _ = self.make_order([(self.jeep, 10, 0)])

        services.add_order_line(order, self.bike, 3, note=" red ")
        services.add_order_line(order, self.mystery, "2")

        order.refresh_from_db()
        self.assertEqual(order.total_qty, 15)
        self.assertEqual(order.total_value, Decimal("5600.00"))
        self.assertEqual(
            self.log_messages(order),
            [
                'Added line item: Racer Bike (3 pcs), Note: "red"',
                "Added line item: Mystery Box (2 pcs)",
            ],
        )

    def test_add_line_requires_positive_qty(self):
        order, _ = self.make_order([(self.jeep, 10, 0)])
        with self.assertRaises(ValidationError):
            services.add_order_line(order, self.bike, 0)

    def test_delete_line_removes_events_and_logs(self):
        order, (jeep_line, bike_line) = self.make_order([(self.jeep, 10, 2), (self.bike, 4, 0)])
        self.add_event(jeep_line, 2, date(2025, 3, 5))

        services.delete_order_line(jeep_line)

        order.refresh_from_db()
        self.assertEqual(order.total_qty, 4)
        self.assertFalse(DispatchEvent.objects.exists())
        self.assertEqual(self.log_messages(order), ["Deleted line item: Mini Jeep (10 pcs)"])


class OrderDetailTests(OrdersTestCase):
    def test_detail_groups_lines(self):
        order, (jeep, bike, mystery, spare) = self.make_order(
            [
                (self.jeep, 5, 5),
                (self.bike, 3, 3),
                (self.mystery, 2, 2),
                (self.spare, 4, 1),
            ],
            status="partially_dispatched",
            expected_dispatch_date=date(2025, 3, 1),
        )
        self.add_event(jeep, 3, date(2025, 3, 5))
        self.add_event(jeep, 2, date(2025, 3, 8))
        self.add_event(bike, 3, date(2025, 3, 5))
        self.add_event(spare, 1, date(2025, 3, 8))

        detail = services.load_order_detail(order.pk, today=date(2025, 3, 10))

        self.assertEqual([line.id for line in detail.pending_lines], [spare.pk])
        self.assertEqual(
            [(b.date_label, [line.id for line in b.lines], b.total_pieces) for b in detail.batches],
            [
                ("2025-03-08", [jeep.pk], 5),
                ("2025-03-05", [bike.pk], 3),
                (NOT_SET, [mystery.pk], 2),
            ],
        )
        self.assertEqual(detail.summary.label, "Dispatch dates: 2025-03-05, 2025-03-08")
        self.assertEqual(detail.totals.total_ordered, 14)
        self.assertEqual(detail.totals.total_dispatched, 11)
        self.assertEqual(detail.totals.fulfillment_percent, 79)
        self.assertTrue(detail.overdue)

    def test_dispatched_orders_are_never_overdue(self):
        order, _ = self.make_order(
            [(self.jeep, 1, 1)],
            status="dispatched",
            expected_dispatch_date=date(2025, 3, 1),
        )
        detail = services.load_order_detail(order.pk, today=date(2025, 3, 10))
        self.assertFalse(detail.overdue)

    def test_logs_are_limited(self):
        order, _ = self.make_order([(self.jeep, 1, 0)])
        OrderLog.objects.bulk_create([OrderLog(order=order, message=f"entry {i}") for i in range(60)])

        detail = services.load_order_detail(order.pk)
        self.assertEqual(len(detail.snapshot.logs), 50)
        self.assertEqual(detail.snapshot.logs[0].message, "entry 59")


class OrderListTests(OrdersTestCase):
    def setUp(self):
        super().setUp()
        self.low, _ = self.make_order([(self.jeep, 10, 1)], order_date=date(2025, 3, 1))
        self.medium, _ = self.make_order(
            [(self.bike, 10, 5)],
            status="partially_dispatched",
            party=self.other_party,
            order_date=date(2025, 3, 2),
        )
        self.done, _ = self.make_order(
            [(self.jeep, 4, 4)],
            status="dispatched",
            order_date=date(2025, 3, 3),
        )

    def test_newest_first_with_summary(self):
        rows, summary = services.list_orders()
        self.assertEqual([r.order for r in rows], [self.done, self.medium, self.low])
        self.assertEqual(summary.count, 3)
        self.assertEqual(summary.total_qty, 24)
        self.assertEqual(summary.total_value, Decimal("9300.00"))

    def test_filters(self):
        rows, _ = services.list_orders(status="partially_dispatched")
        self.assertEqual([r.order for r in rows], [self.medium])

        rows, _ = services.list_orders(fulfilment="low")
        self.assertEqual([r.order for r in rows], [self.low])

        rows, _ = services.list_orders(fulfilment="complete")
        self.assertEqual([r.order for r in rows], [self.done])

        rows, _ = services.list_orders(hide_dispatched=True)
        self.assertNotIn(self.done, [r.order for r in rows])

        rows, _ = services.list_orders(query="shree")
        self.assertEqual([r.order for r in rows], [self.medium])

        rows, _ = services.list_orders(query=self.low.order_code)
        self.assertEqual([r.order for r in rows], [self.low])


# ===================================================================
# Sales analytics
# ===================================================================

class SalesAnalyticsTests(OrdersTestCase):
    def setUp(self):
        super().setUp()
        order, (jeep, bike, spare, rival, mystery) = self.make_order(
            [
                (self.jeep, 10, 6),
                (self.bike, 10, 10),
                (self.spare, 5, 5),
                (self.rival, 2, 2),
                (self.mystery, 4, 1),
            ],
            status="partially_dispatched",
        )
        self.add_event(jeep, 4, date(2025, 3, 5))
        self.add_event(jeep, 2, date(2025, 3, 20))
        self.add_event(bike, 10, date(2025, 3, 10))
        self.add_event(spare, 5, date(2025, 3, 10))
        self.add_event(rival, 2, date(2025, 3, 10))
        self.add_event(mystery, 1, date(2025, 3, 25))

        other_order, (other_jeep,) = self.make_order(
            [(self.jeep, 20, 20)],
            status="dispatched",
            party=self.other_party,
        )
        self.add_event(other_jeep, 20, date(2025, 4, 2))

    def test_party_sales_all_time(self):
        rows = analytics.party_sales()

        self.assertEqual([r.party_name for r in rows], ["Shree Toys", "Balaji Traders"])
        top, second = rows
        self.assertEqual((top.qty, top.value, top.orders_served), (20, Decimal("9000.00"), 1))
        self.assertEqual((second.qty, second.value, second.orders_served), (17, Decimal("5800.00"), 1))

    def test_party_sales_inclusive_range(self):
        rows = analytics.party_sales(date(2025, 3, 1), date(2025, 3, 10))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].qty, 14)
        self.assertEqual(rows[0].value, Decimal("4800.00"))

    def test_party_detail(self):
        detail = analytics.party_sales_detail(self.party)

        self.assertEqual(detail.qty, 17)
        self.assertEqual(detail.value, Decimal("5800.00"))
        self.assertEqual(detail.orders_served, 1)
        # jeep 6/10 + bike 10/10 + mystery 1/4, each line once
        self.assertEqual(detail.fulfillment_percent, 71)
        self.assertEqual(detail.avg_realisation, 341)
        self.assertEqual([s.category for s in detail.categories], ["bike", "jeep"])
        self.assertEqual(
            [(r.item, r.category, r.qty, r.orders_count) for r in detail.items],
            [
                ("Racer Bike", "bike", 10, 1),
                ("Mini Jeep", "jeep", 6, 1),
                ("Mystery Box", "Uncategorised", 1, 1),
            ],
        )

    def test_party_without_sales(self):
        lonely = Party.objects.create(name="Lonely Dealer")
        detail = analytics.party_sales_detail(lonely)
        self.assertEqual((detail.qty, detail.fulfillment_percent, detail.avg_realisation), (0, 0, 0))

    def test_quick_ranges(self):
        today = date(2025, 1, 15)
        self.assertEqual(analytics.quick_range("all", today), (None, None))
        self.assertEqual(analytics.quick_range("this_month", today), (date(2025, 1, 1), today))
        self.assertEqual(
            analytics.quick_range("last_month", today),
            (date(2024, 12, 1), date(2024, 12, 31)),
        )
        self.assertEqual(analytics.quick_range("last_90", today), (date(2024, 10, 18), today))
        with self.assertRaises(ValueError):
            analytics.quick_range("forever", today)


# ===================================================================
# JSON endpoints
# ===================================================================

class OrderApiTests(OrdersTestCase):
    def setUp(self):
        super().setUp()
        self.user = get_user_model().objects.create_user(username="staff", password="secret")
        self.client.force_login(self.user)

    def post_json(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")

    def test_login_required(self):
        self.client.logout()
        self.assertEqual(self.client.get(reverse("orders:list")).status_code, 302)

    def test_punch_and_detail(self):
        response = self.post_json(
            reverse("orders:create"),
            {
                "party": self.party.pk,
                "order_date": "2025-03-01",
                "lines": [
                    {"item": self.jeep.pk, "qty": 3},
                    {"item": "", "qty": 9},
                ],
            },
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["order_code"], "TY-2025-0001")
        self.assertEqual(body["status"], "submitted")
        self.assertEqual(len(body["pending_lines"]), 1)
        self.assertEqual(body["logs"][0]["message"], "Order punched with 1 line(s) (3 pcs).")

        order = Order.objects.get()
        self.assertEqual(order.created_by, self.user)
        self.assertEqual(OrderLog.objects.get().actor, self.user)

    def test_punch_without_lines(self):
        response = self.post_json(reverse("orders:create"), {"party": self.party.pk, "lines": []})
        self.assertEqual(response.status_code, 400)
        self.assertIn("lines", response.json()["errors"])

    def test_unknown_order_is_404(self):
        response = self.client.get(reverse("orders:detail", args=[424242]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"detail": "Order not found."})

        response = self.post_json(reverse("orders:status", args=[424242]), {"status": "packed"})
        self.assertEqual(response.status_code, 404)

    def test_dispatch(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])

        response = self.post_json(
            reverse("orders:dispatch", args=[order.pk]),
            {"dispatch_date": "2025-03-05", "deltas": {str(line.pk): "5"}},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "partially_dispatched")
        self.assertEqual(body["saved"]["events"], 1)
        self.assertEqual(body["pending_lines"][0]["pending_qty"], 15)
        self.assertEqual(body["dispatch_summary"], "Dispatch date: 2025-03-05")

    def test_dispatch_over_pending(self):
        order, (line,) = self.make_order([(self.jeep, 100, 60)])

        response = self.post_json(
            reverse("orders:dispatch", args=[order.pk]),
            {"dispatch_date": "2025-03-05", "deltas": {str(line.pk): "50"}},
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["detail"],
            'Line "Mini Jeep": dispatching 50 pcs exceeds pending 40 pcs.',
        )
        self.assertFalse(DispatchEvent.objects.exists())

    def test_dispatch_without_date(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])
        response = self.post_json(
            reverse("orders:dispatch", args=[order.pk]),
            {"deltas": {str(line.pk): "5"}},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Please choose a dispatch date.")

    def test_dispatch_persistence_failure_is_502(self):
        order, (line,) = self.make_order([(self.jeep, 20, 0)])

        with mock.patch.object(OrderStore, "update_line", side_effect=DatabaseError("database is locked")):
            response = self.post_json(
                reverse("orders:dispatch", args=[order.pk]),
                {"dispatch_date": "2025-03-05", "deltas": {str(line.pk): "5"}},
            )

        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertIn("Could not update order lines", body["detail"])
        self.assertEqual(body["errors"]["step"], ["order_lines"])

    def test_status_remarks_and_expected_date(self):
        order, _ = self.make_order([(self.jeep, 20, 0)])

        response = self.post_json(reverse("orders:status", args=[order.pk]), {"status": "draft"})
        self.assertEqual(response.status_code, 400)

        response = self.post_json(reverse("orders:status", args=[order.pk]), {"status": "packed"})
        self.assertEqual(response.json()["status_label"], "Packed")

        response = self.post_json(reverse("orders:remarks", args=[order.pk]), {"remarks": " call first "})
        self.assertEqual(response.json()["remarks"], "call first")

        response = self.post_json(
            reverse("orders:expected_date", args=[order.pk]),
            {"expected_dispatch_date": "2025-04-01"},
        )
        self.assertEqual(response.json()["expected_dispatch_date"], "2025-04-01")

    def test_add_and_delete_line(self):
        order, _ = self.make_order([(self.jeep, 20, 0)])

        response = self.post_json(
            reverse("orders:line_add", args=[order.pk]),
            {"item": self.bike.pk, "qty": 4, "note": "gift wrap"},
        )
        self.assertEqual(response.status_code, 201)
        line = order.lines.get(item=self.bike)

        response = self.client.post(reverse("orders:line_delete", args=[order.pk, line.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(order.lines.count(), 1)

        response = self.client.post(reverse("orders:line_delete", args=[order.pk, line.pk]))
        self.assertEqual(response.status_code, 404)

    def test_list(self):
        self.make_order([(self.jeep, 10, 10)], status="dispatched")
        self.make_order([(self.bike, 10, 0)])

        body = self.client.get(reverse("orders:list"), {"hide_dispatched": "1"}).json()
        self.assertEqual(body["summary"]["count"], 1)
        self.assertEqual(body["results"][0]["fulfilment"], "low")

        response = self.client.get(reverse("orders:list"), {"fulfilment": "half"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Please choose a valid fulfilment filter.")

        body = self.client.get(reverse("orders:list"), {"fulfilment": "all"}).json()
        self.assertEqual(body["summary"]["count"], 2)

    def test_sales(self):
        order, (line,) = self.make_order([(self.jeep, 10, 4)])
        self.add_event(line, 4, date(2025, 3, 5))

        body = self.client.get(reverse("orders:sales"), {"range": "all"}).json()
        self.assertEqual(body["parties"][0]["party_name"], "Balaji Traders")
        self.assertEqual(body["selected"]["qty"], 4)
        self.assertEqual(body["selected"]["value"], "1800.00")

        response = self.client.get(reverse("orders:sales"), {"range": "forever"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Please choose a valid range.")
