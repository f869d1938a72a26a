import logging
import time

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """
    Логирует каждый HTTP-запрос: метод, путь, статус и длительность.
    Ответы 4xx/5xx пишутся с уровнем WARNING, /health не логируется.
    """

    skip_paths = ('/health',)

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.path in self.skip_paths:
            return self.get_response(request)

        started = time.monotonic()
        response = self.get_response(request)
        duration_ms = int((time.monotonic() - started) * 1000)

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            "HTTP request method=%s path=%s status=%s duration_ms=%d remote_addr=%s",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            request.META.get('REMOTE_ADDR', ''),
        )
        return response
