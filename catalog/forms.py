# catalog/forms.py
import re

from django import forms
from django.utils.translation import gettext_lazy as _

from core.models import PortalSettings
from .models import DEFAULT_UNIT, Item

_RATE_NOISE = re.compile(r"[^\d.]")


class RateField(forms.DecimalField):
    """
    Decimal field that tolerates currency symbols and thousands separators
    ("₹1,250.50" → 1250.50).
    """

    def to_python(self, value):
        if isinstance(value, str):
            value = _RATE_NOISE.sub("", value)
        return super().to_python(value)


def _rate_field(**kwargs) -> RateField:
    return RateField(
        max_digits=12,
        decimal_places=2,
        min_value=0,
        error_messages={
            "required": _("Dealer rate is required."),
            "invalid": _("Please enter a valid dealer rate."),
            "min_value": _("Please enter a valid dealer rate."),
        },
        **kwargs,
    )


class ItemForm(forms.ModelForm):
    """
    Create a catalog item.
    """

    dealer_rate = _rate_field()

    class Meta:
        model = Item
        fields = ["name", "category", "company", "unit", "dealer_rate"]
        error_messages = {
            "name": {"required": _("Item name is required.")},
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["unit"].required = False
        self.fields["company"].required = False

    def clean_name(self):
        name = (self.cleaned_data.get("name") or "").strip()
        if not name:
            raise forms.ValidationError(_("Item name is required."))
        return name

    def clean_category(self):
        return (self.cleaned_data.get("category") or "").strip() or None

    def clean_unit(self):
        return (self.cleaned_data.get("unit") or "").strip() or DEFAULT_UNIT

    def clean_company(self):
        company = (self.cleaned_data.get("company") or "").strip()
        return company or PortalSettings.get_solo().brand_company


class ItemUpdateForm(forms.ModelForm):
    """
    Edit the rate and category of an existing item.
    Orders already punched keep the rate they were taken at.
    """

    dealer_rate = _rate_field()

    class Meta:
        model = Item
        fields = ["dealer_rate", "category"]

    def clean_category(self):
        return (self.cleaned_data.get("category") or "").strip() or None
