from unittest import mock

from django.db.utils import OperationalError
from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase

from learnhub.middleware import RetryDatabaseConnectionMiddleware


class RetryDatabaseConnectionMiddlewareTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    @mock.patch('learnhub.middleware.connections')
    def test_read_is_retried_once(self, connections):
        get_response = mock.Mock(side_effect=[OperationalError('gone away'), HttpResponse('ok')])
        middleware = RetryDatabaseConnectionMiddleware(get_response)
        response = middleware(self.factory.get('/api/me/'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(get_response.call_count, 2)
        connections.close_all.assert_called_once_with()

    @mock.patch('learnhub.middleware.connections')
    def test_write_is_not_replayed(self, connections):
        get_response = mock.Mock(side_effect=OperationalError('gone away'))
        middleware = RetryDatabaseConnectionMiddleware(get_response)
        response = middleware(self.factory.post('/api/courses/1/quizzes/1/attempt/'))
        self.assertEqual(response.status_code, 503)
        self.assertEqual(get_response.call_count, 1)
