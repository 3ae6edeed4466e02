# parties/forms.py
from django import forms
from django.utils.translation import gettext_lazy as _

from .models import Party


OPTIONAL_TEXT_FIELDS = ("city", "gstin", "contact_person", "phone")


class PartyForm(forms.ModelForm):
    """
    Create / edit a party.

    Text fields are trimmed and stored as NULL when left blank; credit days
    must be blank or a non-negative whole number.
    """

    credit_days = forms.IntegerField(
        required=False,
        min_value=0,
        error_messages={
            "invalid": _("Please enter a valid credit days value (or leave blank)."),
            "min_value": _("Please enter a valid credit days value (or leave blank)."),
        },
    )

    class Meta:
        model = Party
        fields = [
            "name",
            "city",
            "gstin",
            "contact_person",
            "phone",
            "credit_days",
        ]
        error_messages = {
            "name": {"required": _("Party name is required.")},
        }

    def clean_name(self):
        name = (self.cleaned_data.get("name") or "").strip()
        if not name:
            raise forms.ValidationError(_("Party name is required."))
        return name

    def clean(self):
        cleaned_data = super().clean()
        for field in OPTIONAL_TEXT_FIELDS:
            value = cleaned_data.get(field)
            if isinstance(value, str):
                value = value.strip()
            cleaned_data[field] = value or None
        return cleaned_data
