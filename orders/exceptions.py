# orders/exceptions.py
from django.core.exceptions import ValidationError


class DispatchQuantityError(ValidationError):
    """
    A "dispatch today" quantity is larger than what is still pending on
    the line. Raised before anything is written.
    """

    def __init__(self, *, item_name: str, delta: int, pending: int, line_id=None):
        self.item_name = item_name
        self.delta = delta
        self.pending = pending
        self.line_id = line_id
        super().__init__(
            f'Line "{item_name}": dispatching {delta} pcs exceeds pending {pending} pcs.',
            code="dispatch_exceeds_pending",
        )


class DispatchPersistenceError(Exception):
    """
    A write step of a dispatch save failed.

    Steps that ran before the failing one stay committed.
    """

    def __init__(self, step: str, message: str):
        self.step = step
        self.message = message
        super().__init__(f"{step}: {message}")
