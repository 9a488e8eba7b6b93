"""
Application errors raised by the service layer and the DRF handler
that turns them into `{"success": false, "message": ...}` responses.
"""
import logging

from django.core.exceptions import ObjectDoesNotExist
from django.db import IntegrityError
from django.http import Http404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that carry an HTTP status"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Internal server error'

    def __init__(self, message=None, status_code=None, details=None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Validation failed'


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Authentication required'


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Access denied'


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Resource not found'


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Resource already exists'


class TooManyRequestsError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = 'Too many requests'


def _error_response(message, status_code, details=None):
    body = {'success': False, 'message': message}
    if details:
        body['errors'] = details
    return Response(body, status=status_code)


def app_exception_handler(exc, context):
    """DRF exception handler for AppError, ORM errors and DRF's own exceptions"""
    if isinstance(exc, AppError):
        if exc.status_code >= 500:
            logger.error(f"Application error: {exc.message}", exc_info=exc)
        return _error_response(exc.message, exc.status_code, exc.details)

    if isinstance(exc, IntegrityError):
        logger.warning(f"Integrity error: {str(exc)}")
        return _error_response('Resource already exists', status.HTTP_409_CONFLICT)

    if isinstance(exc, ObjectDoesNotExist):
        return _error_response(str(exc) or 'Resource not found', status.HTTP_404_NOT_FOUND)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.error(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {str(exc)}", exc_info=exc)
        return None

    if isinstance(exc, Http404):
        response.data = {'success': False, 'message': 'Resource not found'}
    elif isinstance(response.data, dict) and 'detail' in response.data:
        response.data = {'success': False, 'message': str(response.data['detail'])}
    return response
