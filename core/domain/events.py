# core/domain/events.py
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """
    Base for in-process domain events (order punched, dispatch recorded...).

    Subclasses are frozen dataclasses carrying ids and plain values only,
    never model instances, so handlers reload whatever they need.
    """
    occurred_at: datetime = field(default_factory=_utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return type(self).__name__

    def payload(self) -> Dict[str, Any]:
        """
        Event fields without the bookkeeping ones.
        """
        data = asdict(self)
        data.pop("occurred_at", None)
        data.pop("metadata", None)
        return data
