# catalog/services.py
import logging

from django.db import transaction

from .models import Item

logger = logging.getLogger(__name__)


def item_payload(item: Item) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "category": item.category or "",
        "company": item.company,
        "unit": item.unit,
        "dealer_rate": str(item.dealer_rate),
        "is_active": item.is_active,
    }


@transaction.atomic
def save_item(form) -> Item:
    """
    Persist a validated ItemForm / ItemUpdateForm.
    """
    is_create = form.instance.pk is None
    previous_rate = None if is_create else Item.objects.get(pk=form.instance.pk).dealer_rate

    item = form.save()

    if is_create:
        logger.info("Created item %s (%s) at rate %s", item.pk, item.name, item.dealer_rate)
    elif previous_rate != item.dealer_rate:
        logger.info(
            "Item %s (%s) dealer rate changed %s → %s",
            item.pk,
            item.name,
            previous_rate,
            item.dealer_rate,
        )
    return item


@transaction.atomic
def toggle_item_active(item: Item) -> Item:
    item.is_active = not item.is_active
    item.save(update_fields=["is_active", "updated_at"])
    logger.info("Item %s active=%s", item.pk, item.is_active)
    return item
