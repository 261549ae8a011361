from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, AuthenticationFailed, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from common.logging import current_request_id

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR_MESSAGE = "An unexpected error occurred."


class BusinessRuleError(APIException):
    """A well-formed request refused by the current state of the records it touches."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state."
    default_code = "conflict"


class InvalidTransition(BusinessRuleError):
    """Operation attempted from a state that does not permit it."""

    default_detail = "This operation is not allowed in the current state."
    default_code = "invalid_transition"


class ConcurrencyConflict(BusinessRuleError):
    """Lock contention on an order or transfer; the caller may retry."""

    default_detail = "The record is being modified by another request. Please retry."
    default_code = "concurrency_conflict"


# Codes for exceptions whose DRF default_code is missing or too specific.
CODE_OVERRIDES: tuple[tuple[type[Exception], str], ...] = (
    (ValidationError, "validation_error"),
    (AuthenticationFailed, "authentication_failed"),
    (Http404, "not_found"),
    (DjangoPermissionDenied, "permission_denied"),
)


def build_error_envelope(*, code: str, message: str, errors: Any, status_code: int) -> dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "errors": errors,
        "status": status_code,
    }


def custom_exception_handler(exc: Exception, context: dict[str, Any]) -> Response:
    """Render every API error as ``{code, message, errors, status}``."""
    response = drf_exception_handler(exc, context)

    if response is None:
        view = context.get("view")
        logger.exception(
            "unhandled_exception view=%s",
            type(view).__name__ if view is not None else "unknown",
            extra={"request_id": current_request_id()},
        )
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return Response(
            build_error_envelope(
                code="internal_server_error",
                message=GENERIC_SERVER_ERROR_MESSAGE,
                errors=None,
                status_code=status_code,
            ),
            status=status_code,
        )

    code = error_code(exc)
    message = _message(exc, response.data)
    if isinstance(exc, BusinessRuleError):
        logger.info("business_rule_rejected code=%s message=%s", code, message)

    response.data = build_error_envelope(
        code=code,
        message=message,
        errors=_field_errors(response.data),
        status_code=response.status_code,
    )
    return response


def error_code(exc: Exception) -> str:
    for exception_type, code in CODE_OVERRIDES:
        if isinstance(exc, exception_type):
            return code
    if isinstance(exc, APIException):
        return str(exc.default_code)
    return "internal_server_error"


def _message(exc: Exception, data: Any) -> str:
    if isinstance(exc, ValidationError):
        return "Validation failed."

    detail = data.get("detail") if isinstance(data, Mapping) else data
    if isinstance(detail, str) and detail:
        return detail
    if detail:
        return str(detail)
    return GENERIC_SERVER_ERROR_MESSAGE


def _field_errors(data: Any) -> Any:
    if isinstance(data, Mapping):
        return None if set(data) == {"detail"} else data
    if isinstance(data, Sequence) and not isinstance(data, str):
        return data
    return None
