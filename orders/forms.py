# orders/forms.py
from django import forms
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from catalog.models import Item
from parties.models import Party
from .models import MANUAL_STATUSES, PUNCH_STATUSES, OrderStatus
from .services import LineInput


def _mapping_field() -> forms.JSONField:
    return forms.JSONField(required=False)


class PunchOrderForm(forms.Form):
    """
    New order header plus its line rows.

    ``lines`` is a list of ``{"item": <id>, "qty": <n>, "note": "..."}``.
    Rows without an item are ignored; the service drops rows whose
    quantity is not positive.
    """

    party = forms.ModelChoiceField(
        queryset=Party.objects.active(),
        error_messages={
            "required": _("Please choose a party."),
            "invalid_choice": _("Please choose a party."),
        },
    )
    order_date = forms.DateField(required=False)
    expected_dispatch_date = forms.DateField(required=False)
    remarks = forms.CharField(required=False)
    status = forms.ChoiceField(
        required=False,
        choices=[(s.value, s.label) for s in PUNCH_STATUSES],
    )
    lines = forms.JSONField(required=False)

    def clean_order_date(self):
        return self.cleaned_data.get("order_date") or timezone.localdate()

    def clean_status(self):
        return self.cleaned_data.get("status") or OrderStatus.SUBMITTED.value

    def clean_lines(self):
        rows = self.cleaned_data.get("lines") or []
        if not isinstance(rows, list):
            raise forms.ValidationError(_("Line items must be a list."))

        item_ids = set()
        for row in rows:
            if not isinstance(row, dict):
                raise forms.ValidationError(_("Each line item must be an object."))
            if row.get("item") not in (None, ""):
                item_ids.add(str(row["item"]))

        items = {}
        if item_ids:
            try:
                items = {str(i.pk): i for i in Item.objects.filter(pk__in=item_ids)}
            except (TypeError, ValueError):
                raise forms.ValidationError(_("Unknown item selected."))

        parsed = []
        for index, row in enumerate(rows, start=1):
            item_id = row.get("item")
            if item_id in (None, ""):
                continue
            item = items.get(str(item_id))
            if item is None:
                raise forms.ValidationError(
                    _("Line %(n)s: unknown item."), params={"n": index}
                )
            parsed.append(LineInput(item=item, qty=row.get("qty"), note=row.get("note")))
        return parsed


class AddLineForm(forms.Form):
    item = forms.ModelChoiceField(
        queryset=Item.objects.active(),
        error_messages={
            "required": _("Please choose an item."),
            "invalid_choice": _("Please choose an item."),
        },
    )
    qty = forms.IntegerField(
        min_value=1,
        error_messages={
            "required": _("Quantity must be greater than zero."),
            "invalid": _("Quantity must be greater than zero."),
            "min_value": _("Quantity must be greater than zero."),
        },
    )
    note = forms.CharField(required=False)


class StatusForm(forms.Form):
    status = forms.ChoiceField(
        choices=[(s.value, s.label) for s in MANUAL_STATUSES],
        error_messages={
            "required": _("Please choose a valid status."),
            "invalid_choice": _("Please choose a valid status."),
        },
    )


class RemarksForm(forms.Form):
    remarks = forms.CharField(required=False, strip=True)


class ExpectedDateForm(forms.Form):
    expected_dispatch_date = forms.DateField(
        required=False,
        error_messages={"invalid": _("Please enter a valid date.")},
    )


class DispatchForm(forms.Form):
    """
    One dispatch save: a date plus per-line "dispatch today" quantities and
    edited notes, both keyed by order line id.
    """

    dispatch_date = forms.DateField(
        error_messages={
            "required": _("Please choose a dispatch date."),
            "invalid": _("Please choose a valid dispatch date."),
        },
    )
    deltas = _mapping_field()
    notes = _mapping_field()
    submission_id = forms.UUIDField(required=False)

    def _clean_mapping(self, name):
        value = self.cleaned_data.get(name) or {}
        if not isinstance(value, dict):
            raise forms.ValidationError(_("Expected an object keyed by line id."))
        return value

    def clean_deltas(self):
        return self._clean_mapping("deltas")

    def clean_notes(self):
        return self._clean_mapping("notes")
