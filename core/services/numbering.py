# core/services/numbering.py
from __future__ import annotations

from django.db import transaction
from django.utils import timezone

from core.models import NumberSequence, PortalSettings


ORDER_CODE_PATTERN = "{prefix}-{year}-{seq:04d}"
UNPREFIXED_ORDER_CODE_PATTERN = "{year}-{seq:04d}"


def _next_sequence_value(key: str, period: str, start: int = 1) -> int:
    """
    Return the next sequence integer for the given key+period.
    Uses select_for_update to avoid race conditions.
    """
    with transaction.atomic():
        seq_obj, created = NumberSequence.objects.select_for_update().get_or_create(
            key=key,
            period=period,
            defaults={"last_value": start - 1},
        )
        return seq_obj.bump()


def next_order_code(order_date=None, *, key: str = "orders.Order") -> str:
    """
    Generate the next human-friendly order code, e.g. "TY-2025-0042".

    The sequence restarts every year; the year is taken from the order
    date when given, otherwise from today.
    """
    settings_obj = PortalSettings.get_solo()
    year = order_date.year if order_date is not None else timezone.localdate().year

    seq = _next_sequence_value(key=key, period=str(year))

    prefix = (settings_obj.order_code_prefix or "").strip()
    if not prefix:
        return UNPREFIXED_ORDER_CODE_PATTERN.format(year=year, seq=seq)
    return ORDER_CODE_PATTERN.format(prefix=prefix, year=year, seq=seq)
