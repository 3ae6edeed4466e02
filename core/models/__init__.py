from .base import TimeStampedModel, UserStampedModel
from .sequences import NumberSequence
from .settings import PortalSettings

__all__ = [
    "TimeStampedModel",
    "UserStampedModel",
    # Auto Number
    "NumberSequence",
    # Runtime settings
    "PortalSettings",
]
