import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

__all__ = [
    'ValidationError', 'NotFound', 'InsufficientStock', 'InvalidTransition',
    'ConflictError', 'exception_handler',
]


class InsufficientStock(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock.'
    default_code = 'insufficient_stock'

    def __init__(self, items, detail=None):
        # items: list of {'id', 'name', 'required', 'available'}
        self.items = items
        if detail is None:
            names = ', '.join(item['name'] for item in items)
            detail = f"Insufficient stock for {names}"
        super().__init__(detail)


class InvalidTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Status transition not allowed.'
    default_code = 'invalid_transition'

    def __init__(self, current, requested, detail=None):
        self.current = current
        self.requested = requested
        if detail is None:
            detail = f"Cannot change status from '{current}' to '{requested}'"
        super().__init__(detail)


class ConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The record was changed by another request. Please retry.'
    default_code = 'conflict'


def exception_handler(exc, context):
    """Wraps DRF's handler so every error body carries a machine readable code."""
    if isinstance(exc, IntegrityError):
        logger.warning("Integrity error in %s: %s", context.get('view').__class__.__name__, exc)
        return Response(
            {'detail': 'A record with these values already exists.', 'code': 'integrity_error'},
            status=status.HTTP_400_BAD_REQUEST,
        )

    response = drf_exception_handler(exc, context)
    if response is None:
        logger.exception("Unhandled error in %s", context.get('view').__class__.__name__)
        return None

    if isinstance(exc, APIException):
        data = response.data if isinstance(response.data, dict) else {'detail': response.data}
        if 'detail' not in data:
            data = {'detail': data}
        data.setdefault('code', exc.default_code)
        if isinstance(exc, InsufficientStock):
            data['items'] = exc.items
        if isinstance(exc, InvalidTransition):
            data['current_status'] = exc.current
            data['requested_status'] = exc.requested
        response.data = data
    return response
