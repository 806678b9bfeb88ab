"""Rendering of application results as DRF responses."""

from __future__ import annotations

from typing import Any, Callable

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.application.result import Err, Result
from shared.domain.errors import RentalError

ERROR_STATUS = {
    'auth_required': status.HTTP_401_UNAUTHORIZED,
    'admin_required': status.HTTP_403_FORBIDDEN,
    'invalid_date_range': status.HTTP_400_BAD_REQUEST,
    'date_conflict': status.HTTP_409_CONFLICT,
    'illegal_transition': status.HTTP_409_CONFLICT,
    'not_found': status.HTTP_404_NOT_FOUND,
    'store_error': status.HTTP_503_SERVICE_UNAVAILABLE,
    'validation_failed': status.HTTP_400_BAD_REQUEST,
}


def error_response(error: RentalError) -> Response:
    return Response(error.to_dict(), status=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST))


def result_response(
    result: Result,
    render: Callable[[Any], Any] = lambda value: value,
    success_status: int = status.HTTP_200_OK,
) -> Response:
    """Render ``Ok`` through ``render`` and ``Err`` as an error payload."""
    if isinstance(result, Err):
        return error_response(result.error)
    return Response(render(result.value), status=success_status)
