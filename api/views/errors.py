import functools
import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)


def error_response(code: str, message: str, http_status: int) -> Response:
    return Response({
        'error': {
            'code': code,
            'message': message
        }
    }, status=http_status)


def validation_error(message: str) -> Response:
    return error_response('VALIDATION_ERROR', message, status.HTTP_400_BAD_REQUEST)


def not_found(e) -> Response:
    return error_response('NOT_FOUND', str(e), status.HTTP_404_NOT_FOUND)


def conflict(e, http_status: int = status.HTTP_409_CONFLICT) -> Response:
    code = getattr(e, 'code', None) or 'VALIDATION_ERROR'
    return error_response(code, e.messages[0], http_status)


def server_error(e, view_name: str) -> Response:
    logger.exception("Unhandled error in %s: %s", view_name, e)
    return error_response('SERVER_ERROR', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)


def missing_fields(data, *fields) -> list:
    """Поля, которых нет в запросе или которые пустые"""
    if not isinstance(data, dict):
        return list(fields)
    return [field for field in fields if data.get(field) in (None, '')]


def maps_domain_errors(conflict_status: int = status.HTTP_409_CONFLICT):
    """
    Переводит исключения сервисов в ответы с кодом ошибки:
    ObjectDoesNotExist -> 404, ValidationError -> conflict_status, остальное -> 500.
    """

    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            try:
                return view(request, *args, **kwargs)
            except ObjectDoesNotExist as e:
                return not_found(e)
            except ValidationError as e:
                return conflict(e, conflict_status)
            except Exception as e:
                return server_error(e, view.__name__)

        return wrapper

    return decorator
