# core/models/settings.py
from django.db import models
from django.utils.translation import gettext_lazy as _
from solo.models import SingletonModel


DEFAULT_SPARE_CATEGORIES = "spare, spares, spare part, spare parts"


class PortalSettings(SingletonModel):
    """
    Runtime business settings for the order portal (one row).
    """

    brand_company = models.CharField(
        max_length=100,
        default="Tycoon",
        verbose_name=_("Brand company"),
        help_text=_("Only items of this company are counted in sales analytics."),
    )
    order_code_prefix = models.CharField(
        max_length=10,
        default="TY",
        verbose_name=_("Order code prefix"),
    )
    activity_log_limit = models.PositiveIntegerField(
        default=50,
        verbose_name=_("Activity log entries shown per order"),
    )
    spare_categories = models.CharField(
        max_length=255,
        default=DEFAULT_SPARE_CATEGORIES,
        verbose_name=_("Spare categories"),
        help_text=_("Comma separated item categories excluded from sales analytics."),
    )

    class Meta:
        verbose_name = _("Portal settings")

    def __str__(self) -> str:
        return "Portal settings"

    @property
    def spare_category_set(self) -> frozenset:
        return frozenset(
            part.strip().lower()
            for part in (self.spare_categories or "").split(",")
            if part.strip()
        )
