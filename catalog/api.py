# catalog/api.py
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from core.http import form_error_response, read_payload, validation_error_response

from .forms import ItemForm, ItemUpdateForm
from .models import Item
from .services import item_payload, save_item, toggle_item_active


@login_required
@require_http_methods(["GET", "POST"])
def item_list_api(request):
    """
    GET  /items/?q=...&active=1
    {
      "count": 2,
      "categories": ["bike", "jeep"],
      "results": [ {item}, ... ]
    }

    POST /items/ → create an item
    """
    if request.method == "POST":
        try:
            data = read_payload(request)
        except ValidationError as exc:
            return validation_error_response(exc)

        form = ItemForm(data)
        if not form.is_valid():
            return form_error_response(form)
        item = save_item(form)
        return JsonResponse(item_payload(item), status=201)

    qs = Item.objects.search((request.GET.get("q") or "").strip())
    if request.GET.get("active") in ("1", "true"):
        qs = qs.active()

    results = [item_payload(i) for i in qs.order_by("name")]
    return JsonResponse(
        {
            "count": len(results),
            "categories": Item.objects.category_options(),
            "results": results,
        }
    )


@login_required
@require_POST
def item_update_api(request, pk: int):
    item = get_object_or_404(Item, pk=pk)
    try:
        data = read_payload(request)
    except ValidationError as exc:
        return validation_error_response(exc)

    form = ItemUpdateForm(data, instance=item)
    if not form.is_valid():
        return form_error_response(form)
    item = save_item(form)
    return JsonResponse(item_payload(item))


@login_required
@require_POST
def item_toggle_api(request, pk: int):
    item = get_object_or_404(Item, pk=pk)
    item = toggle_item_active(item)
    return JsonResponse(item_payload(item))
