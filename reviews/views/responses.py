import logging

from django.core.exceptions import ObjectDoesNotExist
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from ..errors import TeamExists

logger = logging.getLogger(__name__)

DRF_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: 'VALIDATION_ERROR',
    status.HTTP_404_NOT_FOUND: 'NOT_FOUND',
    status.HTTP_405_METHOD_NOT_ALLOWED: 'METHOD_NOT_ALLOWED',
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: 'UNSUPPORTED_MEDIA_TYPE',
}


def error_response(code: str, message: str, http_status: int) -> Response:
    return Response({
        'error': {
            'code': code,
            'message': message
        }
    }, status=http_status)


def validation_error_response(errors) -> Response:
    message = '; '.join(
        f"field '{field}' {_first_message(detail)}" for field, detail in errors.items()
    )
    return error_response('VALIDATION_ERROR', message, status.HTTP_400_BAD_REQUEST)


def domain_error_response(exc) -> Response:
    """
    Переводит доменные ошибки сервисов в ответ со стабильным кодом
    """
    if isinstance(exc, ObjectDoesNotExist):
        return error_response('NOT_FOUND', str(exc) or 'resource not found', status.HTTP_404_NOT_FOUND)

    code = getattr(exc, 'code', None) or 'VALIDATION_ERROR'
    http_status = status.HTTP_400_BAD_REQUEST if isinstance(exc, TeamExists) else status.HTTP_409_CONFLICT
    return error_response(code, exc.messages[0], http_status)


def internal_error_response(exc) -> Response:
    logger.error("Unhandled error: %s", exc, exc_info=exc)
    return error_response('SERVER_ERROR', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)


def api_exception_handler(exc, context):
    """
    Ошибки самого DRF (битый JSON, неверный метод) в общем формате
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    code = DRF_ERROR_CODES.get(response.status_code, 'BAD_REQUEST')
    response.data = {
        'error': {
            'code': code,
            'message': _first_message(response.data) or 'invalid request'
        }
    }
    return response


def _first_message(detail) -> str:
    if isinstance(detail, dict):
        detail = list(detail.values())
    if isinstance(detail, list):
        for item in detail:
            message = _first_message(item)
            if message:
                return message
        return ''
    return str(detail)
