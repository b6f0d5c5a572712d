import functools
import logging

from django.db import Error as DjangoDatabaseError
from django.db import IntegrityError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Insufficient inventory').
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "business_error"

    def __init__(self, message, code=None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class NotFoundError(BusinessLogicException):
    """Referenced order/product does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class ValidationError(BusinessLogicException):
    """Insufficient inventory, malformed item list, missing required field."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class ConflictError(BusinessLogicException):
    """Illegal transition: cancelling a completed order, double payment, ..."""
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class PermissionDeniedError(BusinessLogicException):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "permission_denied"


class DatabaseError(BusinessLogicException):
    """
    Unclassified persistence failure. The original driver message is kept
    in `details` for diagnostics and never sent to the client.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "database_error"

    def __init__(self, message, details=None, code=None):
        self.details = details
        super().__init__(message, code=code)


def translate_db_errors(message, conflict_message=None):
    """
    Wraps a service operation so that domain exceptions pass through
    untouched and raw driver errors leave as DatabaseError.

    Must sit OUTSIDE transaction.atomic so the rollback has already
    happened when the translated error is raised.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except BusinessLogicException:
                raise
            except IntegrityError as e:
                logger.warning("%s: %s", message, e)
                if conflict_message:
                    raise ConflictError(conflict_message) from e
                raise DatabaseError(message, details=str(e)) from e
            except DjangoDatabaseError as e:
                logger.error("%s: %s", message, e)
                raise DatabaseError(message, details=str(e)) from e
        return wrapper
    return decorator


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if isinstance(exc, BusinessLogicException):
        if isinstance(exc, DatabaseError):
            logger.error(f"Database failure: {exc.message} ({exc.details})")
        return Response(
            {"error": exc.message, "code": exc.code},
            status=exc.status_code
        )

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
