# orders/api.py
"""
JSON endpoints for the order pages.

Every endpoint needs a logged-in user. Validation problems answer 400
with {"detail", "errors"}; an unknown order answers 404; a dispatch save
that fails half-way answers 502 with the failing step.
"""
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.http import form_error_response, json_error, read_payload, validation_error_response
from parties.models import Party

from . import analytics, services
from .dispatch import FULFILMENT_BUCKETS, line_stats
from .exceptions import DispatchPersistenceError
from .forms import (
    AddLineForm,
    DispatchForm,
    ExpectedDateForm,
    PunchOrderForm,
    RemarksForm,
    StatusForm,
)
from .models import MANUAL_STATUSES, Order, OrderLine, status_label
from .reconciliation import reconcile_dispatch
from .services import OrderDetail

logger = logging.getLogger(__name__)


# ============================================================
# Serializers
# ============================================================

def _date(value):
    return value.isoformat() if value else None


def _line_payload(line) -> dict:
    stats = line_stats(line)
    return {
        "id": line.id,
        "item_id": line.item_id,
        "item_name": line.item_name,
        "category": line.item_category or "",
        "qty": stats.ordered,
        "dispatched_qty": stats.dispatched,
        "pending_qty": stats.pending,
        "dealer_rate_at_order": str(line.dealer_rate_at_order),
        "line_total": str(line.line_total) if line.line_total is not None else None,
        "line_remarks": line.line_remarks or "",
    }


def _totals_payload(totals) -> dict:
    return {
        "total_ordered": totals.total_ordered,
        "total_dispatched": totals.total_dispatched,
        "total_pending": totals.total_pending,
        "fulfillment_percent": totals.fulfillment_percent,
        "total_value": str(totals.total_value),
    }


def _detail_payload(detail: OrderDetail) -> dict:
    snap = detail.snapshot
    return {
        "id": snap.id,
        "order_code": snap.order_code,
        "party": {"id": snap.party_id, "name": snap.party_name},
        "order_date": _date(snap.order_date),
        "expected_dispatch_date": _date(snap.expected_dispatch_date),
        "status": snap.status,
        "status_label": status_label(snap.status),
        "remarks": snap.remarks or "",
        "totals": _totals_payload(detail.totals),
        "overdue": detail.overdue,
        "dispatch_summary": detail.summary.label,
        "dispatch_dates": list(detail.summary.dates),
        "pending_lines": [_line_payload(line) for line in detail.pending_lines],
        "dispatched_lines": [_line_payload(line) for line in detail.dispatched_lines],
        "batches": [
            {
                "date": batch.date_label,
                "label": batch.heading,
                "total_pieces": batch.total_pieces,
                "lines": [_line_payload(line) for line in batch.lines],
            }
            for batch in detail.batches
        ],
        "logs": [
            {"id": log.id, "message": log.message, "created_at": log.created_at.isoformat()}
            for log in snap.logs
        ],
        "status_options": [{"value": s.value, "label": str(s.label)} for s in MANUAL_STATUSES],
    }


def _order_row_payload(row) -> dict:
    order = row.order
    return {
        "id": order.pk,
        "order_code": order.order_code,
        "party": {"id": order.party_id, "name": order.party.name},
        "order_date": _date(order.order_date),
        "expected_dispatch_date": _date(order.expected_dispatch_date),
        "status": order.status,
        "status_label": status_label(order.status),
        "total_qty": order.total_qty,
        "total_value": str(order.total_value),
        "fulfillment_percent": row.totals.fulfillment_percent,
        "fulfilment": row.bucket,
    }


def order_view(view):
    """
    Resolve ``pk`` to an Order, answering the JSON 404 when it is missing.
    """

    @wraps(view)
    def wrapper(request, pk, *args, **kwargs):
        try:
            order = Order.objects.select_related("party").get(pk=pk)
        except Order.DoesNotExist:
            return json_error("Order not found.", status=404)
        return view(request, order, *args, **kwargs)

    return wrapper


def _detail_response(order_id, status=200):
    try:
        detail = services.load_order_detail(order_id)
    except Order.DoesNotExist:
        return json_error("Order not found.", status=404)
    return JsonResponse(_detail_payload(detail), status=status)


def _payload_or_error(request):
    try:
        return read_payload(request), None
    except ValidationError as exc:
        return None, validation_error_response(exc)


# ============================================================
# Orders
# ============================================================

@login_required
@require_GET
def order_list_api(request):
    """
    GET /orders/?status=packed&fulfilment=low&hide_dispatched=1&q=TY-2025
    """
    fulfilment = request.GET.get("fulfilment") or None
    if fulfilment and fulfilment != "all" and fulfilment not in FULFILMENT_BUCKETS:
        return json_error("Please choose a valid fulfilment filter.")

    rows, summary = services.list_orders(
        status=request.GET.get("status") or None,
        fulfilment=fulfilment,
        hide_dispatched=request.GET.get("hide_dispatched") in ("1", "true"),
        query=request.GET.get("q"),
    )
    return JsonResponse(
        {
            "summary": {
                "count": summary.count,
                "total_qty": summary.total_qty,
                "total_value": str(summary.total_value),
            },
            "results": [_order_row_payload(row) for row in rows],
        }
    )


@login_required
@require_POST
def order_create_api(request):
    data, error = _payload_or_error(request)
    if error:
        return error

    form = PunchOrderForm(data)
    if not form.is_valid():
        return form_error_response(form)

    try:
        order = services.punch_order(
            party=form.cleaned_data["party"],
            lines=form.cleaned_data["lines"],
            order_date=form.cleaned_data["order_date"],
            expected_dispatch_date=form.cleaned_data["expected_dispatch_date"],
            remarks=form.cleaned_data["remarks"],
            status=form.cleaned_data["status"],
            actor=request.user,
        )
    except ValidationError as exc:
        return validation_error_response(exc)

    return _detail_response(order.pk, status=201)


@login_required
@require_GET
def order_detail_api(request, pk: int):
    return _detail_response(pk)


@login_required
@require_POST
def order_dispatch_api(request, pk: int):
    """
    POST /orders/<id>/dispatch/
    {
      "dispatch_date": "2025-03-05",
      "deltas": {"<line_id>": "5"},
      "notes": {"<line_id>": "packed in two cartons"},
      "submission_id": "<uuid, optional>"
    }
    """
    data, error = _payload_or_error(request)
    if error:
        return error

    form = DispatchForm(data)
    if not form.is_valid():
        return form_error_response(form)

    try:
        result = reconcile_dispatch(
            pk,
            form.cleaned_data["dispatch_date"],
            form.cleaned_data["deltas"],
            form.cleaned_data["notes"],
            submission_id=form.cleaned_data["submission_id"],
            actor=request.user,
        )
    except Order.DoesNotExist:
        return json_error("Order not found.", status=404)
    except ValidationError as exc:
        return validation_error_response(exc)
    except DispatchPersistenceError as exc:
        logger.warning("Dispatch save for order %s stopped at %s", pk, exc.step)
        return json_error(exc.message, status=502, errors={"step": [exc.step]})

    payload = _detail_payload(services.build_order_detail(result.snapshot))
    payload["saved"] = {
        "events": 0 if result.events_skipped else len(result.plan.events),
        "line_updates": len(result.plan.line_updates),
        "status_changed": result.plan.status_changed,
        "events_skipped": result.events_skipped,
    }
    return JsonResponse(payload)


@login_required
@require_POST
@order_view
def order_status_api(request, order: Order):
    data, error = _payload_or_error(request)
    if error:
        return error

    form = StatusForm(data)
    if not form.is_valid():
        return form_error_response(form)

    try:
        services.set_order_status(order, form.cleaned_data["status"], actor=request.user)
    except ValidationError as exc:
        return validation_error_response(exc)
    return _detail_response(order.pk)


@login_required
@require_POST
@order_view
def order_remarks_api(request, order: Order):
    data, error = _payload_or_error(request)
    if error:
        return error

    form = RemarksForm(data)
    if not form.is_valid():
        return form_error_response(form)
    services.update_order_remarks(order, form.cleaned_data["remarks"])
    return _detail_response(order.pk)


@login_required
@require_POST
@order_view
def order_expected_date_api(request, order: Order):
    data, error = _payload_or_error(request)
    if error:
        return error

    form = ExpectedDateForm(data)
    if not form.is_valid():
        return form_error_response(form)
    services.update_expected_dispatch_date(order, form.cleaned_data["expected_dispatch_date"])
    return _detail_response(order.pk)


@login_required
@require_POST
@order_view
def order_line_add_api(request, order: Order):
    data, error = _payload_or_error(request)
    if error:
        return error

    form = AddLineForm(data)
    if not form.is_valid():
        return form_error_response(form)

    try:
        services.add_order_line(
            order,
            form.cleaned_data["item"],
            form.cleaned_data["qty"],
            form.cleaned_data["note"],
            actor=request.user,
        )
    except ValidationError as exc:
        return validation_error_response(exc)
    return _detail_response(order.pk, status=201)


@login_required
@require_http_methods(["POST", "DELETE"])
@order_view
def order_line_delete_api(request, order: Order, line_id: int):
    try:
        line = OrderLine.objects.select_related("item", "order").get(pk=line_id, order=order)
    except OrderLine.DoesNotExist:
        return json_error("Line not found.", status=404)
    services.delete_order_line(line, actor=request.user)
    return _detail_response(order.pk)


# ============================================================
# Sales analytics
# ============================================================

def _range_from_request(request):
    mode = request.GET.get("range")
    if mode:
        if mode not in analytics.QUICK_RANGES:
            raise ValidationError("Please choose a valid range.")
        return analytics.quick_range(mode, timezone.localdate())

    raw_from = request.GET.get("from")
    raw_to = request.GET.get("to")
    if raw_from is None and raw_to is None:
        return analytics.quick_range("this_month", timezone.localdate())

    try:
        date_from = parse_date(raw_from) if raw_from else None
        date_to = parse_date(raw_to) if raw_to else None
    except ValueError:
        raise ValidationError("Please enter valid dates.")
    if (raw_from and date_from is None) or (raw_to and date_to is None):
        raise ValidationError("Please enter valid dates.")
    return date_from, date_to


@login_required
@require_GET
def sales_api(request):
    """
    GET /orders/sales/?range=last_90&party=<id>
    GET /orders/sales/?from=2025-01-01&to=2025-03-31

    Without a range the current month is used. Without a party the party
    with the highest sales is selected.
    """
    try:
        date_from, date_to = _range_from_request(request)
    except ValidationError as exc:
        return validation_error_response(exc)

    parties = analytics.party_sales(date_from, date_to)

    selected = None
    party_id = request.GET.get("party")
    if party_id:
        selected = Party.objects.filter(pk=party_id).first() if party_id.isdigit() else None
        if selected is None:
            return json_error("Party not found.", status=404)
    elif parties:
        selected = Party.objects.filter(pk=parties[0].party_id).first()

    detail = analytics.party_sales_detail(selected, date_from, date_to) if selected else None

    return JsonResponse(
        {
            "date_from": _date(date_from),
            "date_to": _date(date_to),
            "parties": [
                {
                    "party_id": row.party_id,
                    "party_name": row.party_name,
                    "qty": row.qty,
                    "value": str(row.value),
                    "orders_served": row.orders_served,
                }
                for row in parties
            ],
            "selected": None
            if detail is None
            else {
                "party_id": detail.party_id,
                "party_name": selected.name,
                "qty": detail.qty,
                "value": str(detail.value),
                "orders_served": detail.orders_served,
                "fulfillment_percent": detail.fulfillment_percent,
                "avg_realisation": detail.avg_realisation,
                "categories": [
                    {"category": s.category, "qty": s.qty, "value": str(s.value)}
                    for s in detail.categories
                ],
                "items": [
                    {
                        "item": r.item,
                        "category": r.category,
                        "qty": r.qty,
                        "value": str(r.value),
                        "orders_count": r.orders_count,
                    }
                    for r in detail.items
                ],
            },
        }
    )
