# core/http.py
"""
Small helpers shared by the JSON endpoints of every app.
"""
import json
from typing import Any, Mapping, Optional

from django.core.exceptions import ValidationError
from django.http import JsonResponse


def read_payload(request) -> dict:
    """
    Return the request body as a dict.

    JSON bodies are decoded; form-encoded posts fall back to request.POST.
    A malformed JSON body raises ValidationError so views answer 400.
    """
    content_type = request.META.get("CONTENT_TYPE", "")
    if content_type.startswith("application/json"):
        if not request.body:
            return {}
        try:
            data = json.loads(request.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError(f"Malformed JSON body: {exc}")
        if not isinstance(data, dict):
            raise ValidationError("JSON body must be an object.")
        return data
    return request.POST.dict()


def json_error(
    detail: str,
    *,
    status: int = 400,
    errors: Optional[Mapping[str, Any]] = None,
) -> JsonResponse:
    payload: dict[str, Any] = {"detail": detail}
    if errors:
        payload["errors"] = dict(errors)
    return JsonResponse(payload, status=status)


def validation_error_response(exc: ValidationError) -> JsonResponse:
    """
    Translate a ValidationError (field dict or flat list) into a 400 answer.
    """
    if hasattr(exc, "error_dict"):
        errors = {field: [str(m) for m in msgs] for field, msgs in exc.message_dict.items()}
        first = next(iter(errors.values()), [""])
        return json_error(first[0] if first else "Invalid data.", errors=errors)
    messages = [str(m) for m in exc.messages]
    return json_error(messages[0] if messages else "Invalid data.")


def form_error_response(form) -> JsonResponse:
    errors = {field: [str(e) for e in errs] for field, errs in form.errors.items()}
    first = next(iter(errors.values()), ["Invalid data."])
    return json_error(first[0], errors=errors)
