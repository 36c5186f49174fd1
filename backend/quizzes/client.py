"""
HTTP transport for ``QuizRunner`` built on ``requests``.

Error responses are turned back into the same exception types the server raised, so the runner
handles a remote failure exactly like a local one. Requests that never got an answer (connection
errors, timeouts) surface as ``TransientError``.

Authenticate by handing in a prepared session, e.g. one with ``session.auth`` set, or one that
already carries a session cookie and CSRF header.
"""
import logging

import requests
from django.conf import settings
from rest_framework import exceptions

from .exceptions import ConflictError, TransientError

logger = logging.getLogger(__name__)


class HttpQuizApi:
    ERRORS_BY_STATUS = {
        400: exceptions.ValidationError,
        401: exceptions.NotAuthenticated,
        403: exceptions.PermissionDenied,
        404: exceptions.NotFound,
        409: ConflictError,
    }

    def __init__(self, base_url, session=None, timeout=None):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = settings.QUIZ_SETTINGS['RUNNER_TIMEOUT'] if timeout is None else timeout

    def _request(self, method, path, payload=None):
        url = f'{self.base_url}/{path}'
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.warning('%s %s failed: %s', method, url, exc)
            raise TransientError() from exc

        if response.ok:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                logger.warning('%s %s returned a non-JSON body', method, url)
                raise TransientError() from exc

        error_class = self.ERRORS_BY_STATUS.get(response.status_code, TransientError)
        logger.info('%s %s returned %s', method, url, response.status_code)
        raise error_class(self._error_detail(response))

    @staticmethod
    def _error_detail(response):
        try:
            data = response.json()
        except ValueError:
            return response.text or None
        if isinstance(data, dict) and 'detail' in data:
            return data['detail']
        return data

    def fetch_quiz(self, course_id, quiz_id):
        return self._request('GET', f'courses/{course_id}/quizzes/{quiz_id}/')

    def submit_attempt(self, course_id, quiz_id, answers, started_at=None):
        payload = {'answers': {str(question_id): option_id for question_id, option_id in answers.items()}}
        if started_at is not None:
            payload['started_at'] = started_at.isoformat()
        return self._request('POST', f'courses/{course_id}/quizzes/{quiz_id}/attempt/', payload)

    def fetch_history(self, course_id, quiz_id):
        return self._request('GET', f'courses/{course_id}/quizzes/{quiz_id}/attempts/')

    def complete_lesson(self, course_id, lesson_id):
        return self._request(
            'POST',
            f'courses/{course_id}/lessons/{lesson_id}/progress/',
            {'status': 'completed'},
        )
