# parties/services.py
import logging

from django.db import transaction

from .forms import PartyForm
from .models import Party

logger = logging.getLogger(__name__)


def party_payload(party: Party) -> dict:
    return {
        "id": party.id,
        "name": party.name,
        "city": party.city or "",
        "gstin": party.gstin or "",
        "contact_person": party.contact_person or "",
        "phone": party.phone or "",
        "credit_days": party.credit_days,
        "is_active": party.is_active,
    }


@transaction.atomic
def save_party(form: PartyForm) -> Party:
    """
    Persist a validated PartyForm (create or update).
    """
    is_create = form.instance.pk is None
    party = form.save()
    logger.info(
        "%s party %s (%s)",
        "Created" if is_create else "Updated",
        party.pk,
        party.name,
    )
    return party


@transaction.atomic
def toggle_party_active(party: Party) -> Party:
    party.is_active = not party.is_active
    party.save(update_fields=["is_active", "updated_at"])
    logger.info("Party %s active=%s", party.pk, party.is_active)
    return party
