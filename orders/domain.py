# orders/domain.py
from dataclasses import dataclass
from datetime import date
from typing import Optional

from core.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPunched(DomainEvent):
    """
    Domain event: a new order was punched.
    """
    order_id: int
    order_code: str
    line_count: int
    total_qty: int


@dataclass(frozen=True)
class DispatchRecorded(DomainEvent):
    """
    Domain event: pieces of one order line were dispatched.
    """
    order_id: int
    order_line_id: int
    item_name: str
    quantity: int
    dispatch_date: date


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    order_id: int
    previous_status: Optional[str]
    new_status: str
    automatic: bool = False
