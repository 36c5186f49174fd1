import logging

from django.db import connections
from django.db.utils import OperationalError
from django.http import JsonResponse

logger = logging.getLogger(__name__)
SAFE_METHODS = frozenset({'GET', 'HEAD', 'OPTIONS'})


class RetryDatabaseConnectionMiddleware:
    """
    Retry reads once when the database connection dies mid-request.

    Writes are never replayed here: a dropped connection during a write (for example an attempt
    submission) rolls the transaction back and the client gets a 503 it can safely retry.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        try:
            return self.get_response(request)
        except OperationalError as exc:
            connections.close_all()
            if request.method not in SAFE_METHODS:
                logger.warning(
                    'Database unavailable handling %s %s; rejecting as retryable',
                    request.method,
                    request.path,
                    exc_info=exc,
                )
                return JsonResponse(
                    {'detail': 'Service temporarily unavailable, please retry.'},
                    status=503,
                )
            logger.warning(
                'Database connection died handling %s %s; retrying once',
                request.method,
                request.path,
                exc_info=exc,
            )
            return self.get_response(request)
