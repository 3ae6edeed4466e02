# core/models/sequences.py
from django.db import models
from django.utils.translation import gettext_lazy as _


class NumberSequence(models.Model):
    """
    Last number handed out for a document kind in one period.

    Order codes use key "orders.Order" and the calendar year as period,
    so numbering restarts every January.
    """

    key = models.CharField(max_length=100, verbose_name=_("Key"))
    period = models.CharField(max_length=16, blank=True, verbose_name=_("Period"))
    last_value = models.PositiveIntegerField(default=0, verbose_name=_("Last value"))

    class Meta:
        unique_together = ("key", "period")
        verbose_name = _("Number sequence")
        verbose_name_plural = _("Number sequences")

    def __str__(self) -> str:
        return f"{self.key} {self.period or '-'}: {self.last_value}"

    def bump(self) -> int:
        """
        Advance and save. Call on a row locked with select_for_update().
        """
        self.last_value += 1
        self.save(update_fields=["last_value"])
        return self.last_value
