"""
Domain exceptions for the dispatch core and the API exception handler.

Services raise the :class:`DispatchError` subclasses below; the handler
renders them (and DRF's own exceptions) in the unified
``{"ok": false, "error": {...}}`` envelope.
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler


class DispatchError(Exception):
    """Base exception for all dispatch domain errors."""
    code = 'dispatch_error'
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **detail):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(DispatchError):
    """Malformed or missing fields, or an invalid state transition."""
    code = 'validation_error'
    http_status = status.HTTP_400_BAD_REQUEST


class NotFoundError(DispatchError):
    """The occurrence, slot, professional or vehicle does not exist."""
    code = 'not_found'
    http_status = status.HTTP_404_NOT_FOUND


class ConflictError(DispatchError):
    """Slot already claimed, professional already confirmed, number collision."""
    code = 'conflict'
    http_status = status.HTTP_409_CONFLICT


class TransientStoreError(DispatchError):
    """The store could not be reached or the transaction failed."""
    code = 'store_unavailable'
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


def api_exception_handler(exc, context):
    if isinstance(exc, DispatchError):
        error = {'code': exc.code, 'message': exc.message}
        if exc.detail:
            error['detail'] = exc.detail
        return Response({'ok': False, 'error': error}, status=exc.http_status)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
