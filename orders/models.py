# orders/models.py
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from catalog.models import Item
from core.models import TimeStampedModel, UserStampedModel
from core.services.numbering import next_order_code
from parties.models import Party
from .managers import DispatchEventManager, OrderManager

DECIMAL_ZERO = Decimal("0.00")


class OrderStatus(models.TextChoices):
    DRAFT = "draft", _("Draft")
    SUBMITTED = "submitted", _("Submitted")
    PENDING = "pending", _("Pending")
    IN_PRODUCTION = "in_production", _("In Production")
    PACKED = "packed", _("Packed")
    PARTIALLY_DISPATCHED = "partially_dispatched", _("Partially Dispatched")
    DISPATCHED = "dispatched", _("Dispatched")
    CANCELLED = "cancelled", _("Cancelled")


# Statuses offered in the manual status dropdown (draft / submitted are
# set by the system when an order is punched).
MANUAL_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.PACKED,
    OrderStatus.PARTIALLY_DISPATCHED,
    OrderStatus.DISPATCHED,
    OrderStatus.CANCELLED,
)

# Statuses a punch may start in.
PUNCH_STATUSES = (OrderStatus.DRAFT, OrderStatus.SUBMITTED)


def status_label(value) -> str:
    if not value:
        return "-"
    try:
        return str(OrderStatus(value).label)
    except ValueError:
        return str(value)


# ===================================================================
# Order
# ===================================================================

class Order(TimeStampedModel, UserStampedModel):
    """
    A dealer order.

    total_qty / total_value are denormalized from the lines and refreshed
    with recompute_totals() whenever lines are added or removed.
    """

    Status = OrderStatus

    order_code = models.CharField(
        max_length=30,
        unique=True,
        blank=True,
        verbose_name=_("Order code"),
    )
    party = models.ForeignKey(
        Party,
        on_delete=models.PROTECT,
        related_name="orders",
        verbose_name=_("Party"),
    )
    order_date = models.DateField(
        default=timezone.localdate,
        db_index=True,
        verbose_name=_("Order date"),
    )
    expected_dispatch_date = models.DateField(
        null=True,
        blank=True,
        verbose_name=_("Expected dispatch date"),
    )
    status = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
        verbose_name=_("Status"),
    )
    remarks = models.TextField(
        null=True,
        blank=True,
        verbose_name=_("Remarks"),
    )
    total_qty = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Total quantity"),
    )
    total_value = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Total value"),
    )

    objects = OrderManager()

    class Meta:
        ordering = ("-order_date", "-id")
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")

    def __str__(self) -> str:
        return f"{self.display_code} - {self.party}"

    @property
    def display_code(self) -> str:
        if self.order_code:
            return self.order_code
        if not self.pk:
            return "NEW"
        return f"#{self.pk}"

    def save(self, *args, **kwargs):
        if not self.order_code:
            self.order_code = next_order_code(self.order_date)
        super().save(*args, **kwargs)

    def recompute_totals(self, save: bool = True) -> None:
        """
        Refresh total_qty / total_value from the current lines.
        """
        agg = self.lines.aggregate(
            qty=models.Sum("qty"),
            value=models.Sum("line_total"),
        )
        self.total_qty = agg.get("qty") or 0
        self.total_value = agg.get("value") or DECIMAL_ZERO

        if save:
            self.save(update_fields=["total_qty", "total_value", "updated_at"])


# ===================================================================
# Order line
# ===================================================================

class OrderLine(TimeStampedModel):
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="lines",
        verbose_name=_("Order"),
    )
    item = models.ForeignKey(
        Item,
        on_delete=models.PROTECT,
        related_name="order_lines",
        verbose_name=_("Item"),
    )
    qty = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        verbose_name=_("Quantity"),
    )
    # Cumulative; kept in step with the line's dispatch events.
    dispatched_qty = models.IntegerField(
        default=0,
        verbose_name=_("Dispatched quantity"),
    )
    dealer_rate_at_order = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Dealer rate at order"),
    )
    line_total = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Line total"),
    )
    line_remarks = models.TextField(
        null=True,
        blank=True,
        verbose_name=_("Line remarks"),
    )

    class Meta:
        ordering = ("id",)
        verbose_name = _("Order line")
        verbose_name_plural = _("Order lines")

    def __str__(self) -> str:
        return f"{self.item} × {self.qty}"

    def compute_line_total(self) -> Decimal:
        rate = self.dealer_rate_at_order or DECIMAL_ZERO
        return (rate * (self.qty or 0)).quantize(Decimal("0.01"))

    def save(self, *args, **kwargs) -> None:
        """
        line_total always follows qty × rate snapshot. Order totals are
        refreshed by the service that changed the lines.
        """
        self.line_total = self.compute_line_total()
        super().save(*args, **kwargs)


# ===================================================================
# Dispatch events / activity log (append-only)
# ===================================================================

class DispatchEvent(models.Model):
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="dispatch_events",
        verbose_name=_("Order"),
    )
    order_line = models.ForeignKey(
        OrderLine,
        on_delete=models.CASCADE,
        related_name="dispatch_events",
        verbose_name=_("Order line"),
    )
    dispatched_qty = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        verbose_name=_("Dispatched quantity"),
    )
    dispatched_at = models.DateTimeField(
        db_index=True,
        verbose_name=_("Dispatched at"),
    )
    submission_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_("Submission id"),
        help_text=_("Identifies the dispatch save that produced this event."),
    )
    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        verbose_name=_("Created at"),
    )

    objects = DispatchEventManager()

    class Meta:
        ordering = ("dispatched_at", "id")
        verbose_name = _("Dispatch event")
        verbose_name_plural = _("Dispatch events")

    def __str__(self) -> str:
        return f"{self.order_line} - {self.dispatched_qty} on {self.dispatched_at:%Y-%m-%d}"


class OrderLog(models.Model):
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="logs",
        verbose_name=_("Order"),
    )
    message = models.TextField(verbose_name=_("Message"))
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order_logs",
        verbose_name=_("Actor"),
    )
    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        editable=False,
        verbose_name=_("Created at"),
    )

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name = _("Order log")
        verbose_name_plural = _("Order logs")

    def __str__(self) -> str:
        return f"{self.order_id}: {self.message}"
