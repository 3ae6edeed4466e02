# orders/handlers.py
"""
Order domain event handlers.

Imported from OrdersConfig.ready() so the handlers register at startup.
"""
import logging

from core.domain.dispatcher import register_handler
from .domain import DispatchRecorded, OrderPunched, OrderStatusChanged

logger = logging.getLogger(__name__)


@register_handler(OrderPunched)
def log_order_punched(event: OrderPunched) -> None:
    logger.info(
        "Order %s punched (id=%s): %s line(s), %s pcs",
        event.order_code,
        event.order_id,
        event.line_count,
        event.total_qty,
    )


@register_handler(DispatchRecorded)
def log_dispatch_recorded(event: DispatchRecorded) -> None:
    logger.info(
        "Order %s: dispatched %s pcs of %s (line %s) on %s",
        event.order_id,
        event.quantity,
        event.item_name,
        event.order_line_id,
        event.dispatch_date.isoformat(),
    )


@register_handler(OrderStatusChanged)
def log_status_changed(event: OrderStatusChanged) -> None:
    logger.info(
        "Order %s status %s → %s (%s)",
        event.order_id,
        event.previous_status,
        event.new_status,
        "automatic" if event.automatic else "manual",
    )
