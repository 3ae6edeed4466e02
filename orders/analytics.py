# orders/analytics.py
"""
Sales analytics over dispatch events.

Only dispatched pieces count as sales. Items of other companies and spare
categories are left out; values use the rate frozen on the order line.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from core.models import PortalSettings
from .dispatch import line_stats
from .models import DispatchEvent

UNCATEGORISED = "Uncategorised"
UNCATEGORISED_NAMES = frozenset({"uncategorised", "uncategorized", "", "unknown"})

QUICK_RANGES = ("all", "this_month", "last_month", "last_90")


@dataclass(frozen=True)
class PartySales:
    party_id: int
    party_name: str
    qty: int
    value: Decimal
    orders_served: int


@dataclass(frozen=True)
class CategorySlice:
    category: str
    qty: int
    value: Decimal


@dataclass(frozen=True)
class ItemSales:
    item: str
    category: str
    qty: int
    value: Decimal
    orders_count: int


@dataclass(frozen=True)
class PartySalesDetail:
    party_id: int
    qty: int
    value: Decimal
    orders_served: int
    fulfillment_percent: int
    avg_realisation: int
    categories: tuple[CategorySlice, ...]
    items: tuple[ItemSales, ...]


def is_uncategorised(category: Optional[str]) -> bool:
    return (category or "").strip().lower() in UNCATEGORISED_NAMES


def _round(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quick_range(mode: str, today: date) -> tuple[Optional[date], Optional[date]]:
    """
    (date_from, date_to) for the quick range buttons; (None, None) is all time.
    """
    if mode == "this_month":
        return today.replace(day=1), today
    if mode == "last_month":
        last_month_end = today.replace(day=1) - timedelta(days=1)
        return last_month_end.replace(day=1), last_month_end
    if mode == "last_90":
        return today - timedelta(days=89), today
    if mode == "all":
        return None, None
    raise ValueError(f"Unknown range: {mode!r}")


def sales_events(date_from: Optional[date] = None, date_to: Optional[date] = None, *, party=None) -> list:
    """
    Dispatch events that count as brand sales in the given inclusive range.
    """
    portal = PortalSettings.get_solo()
    spares = portal.spare_category_set

    qs = (
        DispatchEvent.objects.between(date_from, date_to)
        .filter(
            dispatched_qty__gt=0,
            order_line__item__company__iexact=portal.brand_company,
        )
        .select_related("order__party", "order_line__item")
    )
    if party is not None:
        qs = qs.filter(order__party=party)

    return [
        event
        for event in qs
        if (event.order_line.item.category or "").strip().lower() not in spares
    ]


def _event_value(event) -> Decimal:
    rate = event.order_line.dealer_rate_at_order or Decimal("0")
    return rate * event.dispatched_qty


def party_sales(date_from: Optional[date] = None, date_to: Optional[date] = None) -> list[PartySales]:
    """
    Sales per party, highest value first.
    """
    qty = defaultdict(int)
    value = defaultdict(lambda: Decimal("0"))
    orders = defaultdict(set)
    names = {}

    for event in sales_events(date_from, date_to):
        party = event.order.party
        names[party.pk] = party.name
        qty[party.pk] += event.dispatched_qty
        value[party.pk] += _event_value(event)
        orders[party.pk].add(event.order_id)

    rows = [
        PartySales(
            party_id=party_id,
            party_name=names[party_id],
            qty=qty[party_id],
            value=value[party_id],
            orders_served=len(orders[party_id]),
        )
        for party_id in names
    ]
    rows.sort(key=lambda row: row.value, reverse=True)
    return rows


def _served_fulfilment(lines: Iterable) -> int:
    ordered = 0
    dispatched = 0
    for line in lines:
        stats = line_stats(line)
        ordered += stats.ordered
        dispatched += stats.dispatched
    if ordered <= 0:
        return 0
    return _round(Decimal(dispatched) * 100 / Decimal(ordered))


def party_sales_detail(
    party,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> PartySalesDetail:
    """
    Totals, category slices and item rows for one party.

    Fulfilment is dispatched / ordered over the lines that had sales in the
    range, each line counted once however many events it has.
    """
    total_qty = 0
    total_value = Decimal("0")
    served_orders = set()
    served_lines = {}

    by_category = defaultdict(lambda: [0, Decimal("0")])
    by_item = {}

    for event in sales_events(date_from, date_to, party=party):
        line = event.order_line
        item = line.item
        value = _event_value(event)
        category = (item.category or "").strip()

        total_qty += event.dispatched_qty
        total_value += value
        served_orders.add(event.order_id)
        served_lines[line.pk] = line

        if not is_uncategorised(category):
            by_category[category][0] += event.dispatched_qty
            by_category[category][1] += value

        name = (item.name or "").strip() or "Unknown item"
        row = by_item.setdefault(
            name,
            {"category": category or UNCATEGORISED, "qty": 0, "value": Decimal("0"), "orders": set()},
        )
        row["qty"] += event.dispatched_qty
        row["value"] += value
        row["orders"].add(event.order_id)

    categories = sorted(
        (CategorySlice(category=c, qty=q, value=v) for c, (q, v) in by_category.items()),
        key=lambda s: s.value,
        reverse=True,
    )
    items = sorted(
        (
            ItemSales(
                item=name,
                category=row["category"],
                qty=row["qty"],
                value=row["value"],
                orders_count=len(row["orders"]),
            )
            for name, row in by_item.items()
        ),
        key=lambda r: r.value,
        reverse=True,
    )

    return PartySalesDetail(
        party_id=party.pk,
        qty=total_qty,
        value=total_value,
        orders_served=len(served_orders),
        fulfillment_percent=_served_fulfilment(served_lines.values()),
        avg_realisation=_round(total_value / total_qty) if total_qty else 0,
        categories=tuple(categories),
        items=tuple(items),
    )
