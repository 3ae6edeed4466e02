# catalog/models.py
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import TimeStampedModel
from .managers import ItemManager

DECIMAL_ZERO = Decimal("0.00")
DEFAULT_UNIT = "pcs"


class Item(TimeStampedModel):
    """
    A catalog product sold to dealers at a dealer (wholesale) rate.

    The rate here is the *current* rate; order lines keep their own copy
    taken when the order was punched.
    """

    name = models.CharField(
        max_length=255,
        verbose_name=_("Name"),
    )
    category = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        db_index=True,
        verbose_name=_("Category"),
        help_text=_("e.g. jeep, bike, car, scooter, spare."),
    )
    company = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name=_("Company / brand"),
    )
    unit = models.CharField(
        max_length=20,
        default=DEFAULT_UNIT,
        verbose_name=_("Unit"),
    )
    dealer_rate = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=DECIMAL_ZERO,
        validators=[MinValueValidator(DECIMAL_ZERO)],
        verbose_name=_("Dealer rate"),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_("Active"),
    )

    objects = ItemManager()

    class Meta:
        ordering = ("name",)
        verbose_name = _("Item")
        verbose_name_plural = _("Items")

    def __str__(self) -> str:
        return self.name

    @property
    def category_label(self) -> str:
        return (self.category or "").strip() or "Uncategorised"
