# parties/models.py
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import TimeStampedModel
from .managers import PartyManager


class Party(TimeStampedModel):
    """
    A dealer / customer that places orders.
    """

    name = models.CharField(
        max_length=255,
        verbose_name=_("Name"),
    )
    city = models.CharField(
        max_length=120,
        blank=True,
        null=True,
        verbose_name=_("City"),
    )
    gstin = models.CharField(
        max_length=20,
        blank=True,
        null=True,
        verbose_name=_("GSTIN"),
    )
    contact_person = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        verbose_name=_("Contact person"),
    )
    phone = models.CharField(
        max_length=50,
        blank=True,
        null=True,
        verbose_name=_("Phone"),
    )
    credit_days = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Credit days"),
        help_text=_("Leave blank when no credit terms are agreed."),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_("Active"),
    )

    objects = PartyManager()

    class Meta:
        ordering = ("name",)
        verbose_name = _("Party")
        verbose_name_plural = _("Parties")

    def __str__(self) -> str:
        if self.city:
            return f"{self.name} · {self.city}"
        return self.name
