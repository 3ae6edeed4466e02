# parties/api.py
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from core.http import form_error_response, read_payload, validation_error_response

from .forms import PartyForm
from .models import Party
from .services import party_payload, save_party, toggle_party_active


@login_required
@require_http_methods(["GET", "POST"])
def party_list_api(request):
    """
    GET  /parties/?q=...&active=1  → {"count": n, "results": [...]}
    POST /parties/                 → create a party
    """
    if request.method == "POST":
        try:
            data = read_payload(request)
        except ValidationError as exc:
            return validation_error_response(exc)

        form = PartyForm(data)
        if not form.is_valid():
            return form_error_response(form)
        party = save_party(form)
        return JsonResponse(party_payload(party), status=201)

    qs = Party.objects.search((request.GET.get("q") or "").strip())
    if request.GET.get("active") in ("1", "true"):
        qs = qs.active()

    results = [party_payload(p) for p in qs.order_by("name")]
    return JsonResponse({"count": len(results), "results": results})


@login_required
@require_POST
def party_update_api(request, pk: int):
    party = get_object_or_404(Party, pk=pk)
    try:
        data = read_payload(request)
    except ValidationError as exc:
        return validation_error_response(exc)

    form = PartyForm(data, instance=party)
    if not form.is_valid():
        return form_error_response(form)
    party = save_party(form)
    return JsonResponse(party_payload(party))


@login_required
@require_POST
def party_toggle_api(request, pk: int):
    party = get_object_or_404(Party, pk=pk)
    party = toggle_party_active(party)
    return JsonResponse(party_payload(party))
