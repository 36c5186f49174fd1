import json
from unittest import mock

import requests
from django.contrib.auth.models import User
from django.test import SimpleTestCase
from rest_framework import exceptions
from rest_framework.test import APIClient, APITestCase

from accounts.models import Profile
from courses.models import Course, Enrollment, Lesson, LessonProgress
from quizzes import authoring
from quizzes.client import HttpQuizApi
from quizzes.exceptions import ConflictError, InvalidTransition, TransientError
from quizzes.runner import QuizRunner, RunnerState, lesson_completion_hook


QUIZ = {
    'id': 7,
    'title': 'Checkpoint',
    'questions': [
        {'id': 2, 'question_text': 'Second', 'sort_order': 1, 'options': [{'id': 21}, {'id': 22}]},
        {'id': 1, 'question_text': 'First', 'sort_order': 0, 'options': [{'id': 11}, {'id': 12}]},
    ],
}


def graded(score):
    return {
        'attempt': {'attempt_number': 1, 'score': score, 'points_earned': 0},
        'summary': {'score_percent': score, 'points_earned': 0, 'is_first_perfect': False},
        'results': [],
    }


class FakeQuizApi:
    def __init__(self, quiz=None, results=None):
        self.quiz = QUIZ if quiz is None else quiz
        self.results = list(results or [graded(100)])
        self.fetch_error = None
        self.submit_error = None
        self.history_error = None
        self.submissions = []
        self.completed_lessons = []

    def fetch_quiz(self, course_id, quiz_id):
        if self.fetch_error:
            raise self.fetch_error
        return self.quiz

    def submit_attempt(self, course_id, quiz_id, answers, started_at=None):
        self.submissions.append(dict(answers))
        if self.submit_error:
            raise self.submit_error
        return self.results.pop(0)

    def fetch_history(self, course_id, quiz_id):
        if self.history_error:
            raise self.history_error
        return {'summary': {'total_attempts': len(self.submissions)}, 'attempts': []}

    def complete_lesson(self, course_id, lesson_id):
        self.completed_lessons.append(lesson_id)


class QuizRunnerTests(SimpleTestCase):
    def make_runner(self, api=None, **kwargs):
        self.api = api or FakeQuizApi()
        runner = QuizRunner(self.api, course_id=1, quiz_id=7, **kwargs)
        self.assertTrue(runner.load())
        return runner

    def answer_all(self, runner):
        runner.select_option(1, 11)
        runner.select_option(2, 21)
        runner.go_to(1)

    def test_load_orders_questions(self):
        runner = self.make_runner()
        self.assertEqual(runner.state, RunnerState.READY)
        self.assertEqual([question['id'] for question in runner.questions], [1, 2])
        self.assertTrue(runner.can_start)

    def test_load_failure_and_retry(self):
        api = FakeQuizApi()
        api.fetch_error = TransientError()
        runner = QuizRunner(api, course_id=1, quiz_id=7)
        self.assertFalse(runner.load())
        self.assertEqual(runner.state, RunnerState.ERROR)
        self.assertTrue(runner.error)

        api.fetch_error = None
        self.assertTrue(runner.retry())
        self.assertEqual(runner.state, RunnerState.READY)
        self.assertEqual(runner.error, '')

    def test_empty_quiz_cannot_start(self):
        runner = self.make_runner(FakeQuizApi(quiz={'id': 7, 'title': 'Empty', 'questions': []}))
        self.assertTrue(runner.is_empty)
        self.assertFalse(runner.can_start)
        with self.assertRaises(InvalidTransition):
            runner.start()

    def test_navigation_is_clamped(self):
        runner = self.make_runner()
        runner.start()
        self.assertIsNotNone(runner.started_at)
        runner.previous()
        self.assertEqual(runner.current_index, 0)
        runner.next()
        runner.next()
        self.assertEqual(runner.current_index, 1)
        self.assertTrue(runner.is_last_question)
        runner.go_to(0)
        self.assertEqual(runner.current_question['id'], 1)

    def test_select_validates_ids(self):
        runner = self.make_runner()
        runner.start()
        with self.assertRaises(ValueError):
            runner.select_option(1, 21)
        with self.assertRaises(ValueError):
            runner.select_option(99, 11)
        runner.select_option(1, 11)
        runner.select_option(1, 12)
        self.assertEqual(runner.answers, {1: 12})

    def test_actions_outside_taking_are_rejected(self):
        runner = self.make_runner()
        with self.assertRaises(InvalidTransition):
            runner.select_option(1, 11)
        with self.assertRaises(InvalidTransition):
            runner.next()
        with self.assertRaises(InvalidTransition):
            runner.submit()
        with self.assertRaises(InvalidTransition):
            runner.retake()

    def test_submit_only_on_last_question(self):
        runner = self.make_runner()
        runner.start()
        runner.select_option(1, 11)
        runner.select_option(2, 21)
        self.assertFalse(runner.can_submit)
        with self.assertRaises(InvalidTransition):
            runner.submit()
        self.assertEqual(self.api.submissions, [])

    def test_incomplete_answers_never_reach_the_network(self):
        runner = self.make_runner()
        runner.start()
        runner.select_option(2, 22)
        runner.go_to(1)
        self.assertFalse(runner.submit())
        self.assertEqual(self.api.submissions, [])
        self.assertEqual(runner.state, RunnerState.TAKING)
        self.assertEqual(runner.unanswered_count, 1)
        self.assertEqual(runner.error, 'Please answer all questions. 1 question remaining.')
        self.assertEqual(runner.current_index, 0)

    def test_gate_message_pluralises(self):
        runner = self.make_runner()
        runner.start()
        runner.go_to(1)
        self.assertFalse(runner.submit())
        self.assertEqual(runner.error, 'Please answer all questions. 2 questions remaining.')
        runner.dismiss_error()
        self.assertEqual(runner.error, '')

    def test_successful_submit_shows_results(self):
        runner = self.make_runner()
        runner.start()
        self.answer_all(runner)
        self.assertTrue(runner.submit())
        self.assertEqual(runner.state, RunnerState.RESULTS)
        self.assertEqual(self.api.submissions, [{1: 11, 2: 21}])
        self.assertEqual(runner.result['summary']['score_percent'], 100)

    def test_answers_are_frozen_while_submitting(self):
        runner = self.make_runner()
        runner.start()
        self.answer_all(runner)
        seen = {}

        def submit_attempt(course_id, quiz_id, answers, started_at=None):
            seen['state'] = runner.state
            with self.assertRaises(InvalidTransition):
                runner.select_option(1, 12)
            return graded(50)

        self.api.submit_attempt = submit_attempt
        runner.submit()
        self.assertEqual(seen['state'], RunnerState.SUBMITTING)
        self.assertEqual(runner.answers, {1: 11, 2: 21})

    def test_submit_failure_keeps_answers(self):
        runner = self.make_runner()
        runner.start()
        self.answer_all(runner)
        for error in [TransientError(), ConflictError(), exceptions.ValidationError({'answers': ['Bad answer.']})]:
            self.api.submit_error = error
            self.assertFalse(runner.submit())
            self.assertEqual(runner.state, RunnerState.TAKING)
            self.assertEqual(runner.answers, {1: 11, 2: 21})
            self.assertTrue(runner.error)
        self.assertEqual(runner.error, 'Bad answer.')

        self.api.submit_error = None
        self.assertTrue(runner.submit())

    def test_quiz_removed_during_submit(self):
        runner = self.make_runner()
        runner.start()
        self.answer_all(runner)
        self.api.submit_error = exceptions.NotFound('Quiz not found.')
        self.assertFalse(runner.submit())
        self.assertEqual(runner.state, RunnerState.ERROR)
        self.assertEqual(runner.error, 'Quiz not found.')

    def test_retake_and_back_to_overview(self):
        runner = self.make_runner(FakeQuizApi(results=[graded(50), graded(100)]))
        runner.start()
        self.answer_all(runner)
        runner.submit()
        runner.retake()
        self.assertEqual(runner.state, RunnerState.TAKING)
        self.assertEqual(runner.answers, {})
        self.assertEqual(runner.current_index, 0)
        self.assertIsNone(runner.result)

        self.answer_all(runner)
        runner.submit()
        runner.back_to_overview()
        self.assertEqual(runner.state, RunnerState.READY)

    def test_perfect_score_callback_fires_only_at_100(self):
        callback = mock.Mock()
        api = FakeQuizApi(results=[graded(99), graded(100), graded(100)])
        runner = self.make_runner(api, on_perfect_score=callback)
        runner.start()
        self.answer_all(runner)
        runner.submit()
        callback.assert_not_called()
        for _ in range(2):
            runner.retake()
            self.answer_all(runner)
            runner.submit()
        self.assertEqual(callback.call_count, 2)

    def test_history_failure_is_not_fatal(self):
        runner = self.make_runner()
        self.assertEqual(runner.load_history()['summary']['total_attempts'], 0)
        self.api.history_error = TransientError()
        self.assertIsNone(runner.load_history())
        self.assertEqual(runner.state, RunnerState.READY)

    def test_lesson_completion_hook_swallows_transport_errors(self):
        api = FakeQuizApi()
        hook = lesson_completion_hook(api, course_id=1, lesson_id=5)
        hook()
        self.assertEqual(api.completed_lessons, [5])

        api.complete_lesson = mock.Mock(side_effect=TransientError())
        with self.assertLogs('quizzes.runner', level='WARNING'):
            hook()


class HttpQuizApiTests(SimpleTestCase):
    def make_response(self, status_code, payload=None):
        response = requests.Response()
        response.status_code = status_code
        response._content = b'' if payload is None else json.dumps(payload).encode()
        return response

    def make_html_response(self):
        response = requests.Response()
        response.status_code = 200
        response._content = b'<html>Sign in</html>'
        return response

    def make_api(self, response=None, error=None):
        session = mock.Mock()
        if error is not None:
            session.request.side_effect = error
        else:
            session.request.return_value = response
        return HttpQuizApi('http://testserver/api/', session=session, timeout=3), session

    def test_builds_request(self):
        api, session = self.make_api(self.make_response(201, graded(100)))
        result = api.submit_attempt(1, 7, {1: 11})
        session.request.assert_called_once_with(
            'POST',
            'http://testserver/api/courses/1/quizzes/7/attempt/',
            json={'answers': {'1': 11}},
            timeout=3,
        )
        self.assertEqual(result['summary']['score_percent'], 100)

    def test_maps_status_codes(self):
        cases = [
            (400, {'answers': ['Bad.']}, exceptions.ValidationError),
            (404, {'detail': 'Not found.'}, exceptions.NotFound),
            (409, {'detail': 'Retry.'}, ConflictError),
            (500, None, TransientError),
            (503, {'detail': 'Busy.'}, TransientError),
        ]
        for status_code, payload, error_class in cases:
            api, _ = self.make_api(self.make_response(status_code, payload))
            with self.assertRaises(error_class):
                api.fetch_quiz(1, 7)

    def test_network_failure_is_transient(self):
        api, _ = self.make_api(error=requests.exceptions.ConnectionError('refused'))
        with self.assertRaises(TransientError):
            api.fetch_history(1, 7)

    def test_non_json_success_body_is_transient(self):
        api, _ = self.make_api(self.make_html_response())
        with self.assertRaises(TransientError):
            api.fetch_quiz(1, 7)

    def test_non_json_submit_returns_runner_to_taking(self):
        session = mock.Mock()
        session.request.side_effect = [self.make_response(200, QUIZ), self.make_html_response()]
        runner = QuizRunner(HttpQuizApi('http://testserver/api', session=session, timeout=3), course_id=1, quiz_id=7)
        self.assertTrue(runner.load())
        runner.start()
        runner.select_option(1, 11)
        runner.select_option(2, 21)
        runner.go_to(1)

        self.assertFalse(runner.submit())
        self.assertIs(runner.state, RunnerState.TAKING)
        self.assertEqual(runner.answers, {1: 11, 2: 21})
        self.assertTrue(runner.error)

    def test_non_json_load_allows_retry(self):
        session = mock.Mock()
        session.request.side_effect = [self.make_html_response(), self.make_response(200, QUIZ)]
        runner = QuizRunner(HttpQuizApi('http://testserver/api', session=session, timeout=3), course_id=1, quiz_id=7)
        self.assertFalse(runner.load())
        self.assertIs(runner.state, RunnerState.ERROR)
        self.assertTrue(runner.retry())
        self.assertIs(runner.state, RunnerState.READY)


class APIClientSession:
    """Adapts DRF's test client to the ``requests.Session.request`` interface."""

    def __init__(self, client):
        self.client = client

    def request(self, method, url, **kwargs):
        payload = kwargs.get('json')
        body = '' if payload is None else json.dumps(payload)
        result = self.client.generic(method, url, body, content_type='application/json')
        response = requests.Response()
        response.status_code = result.status_code
        response._content = result.content
        return response


class QuizRunnerEndToEndTests(APITestCase):
    def setUp(self):
        owner = User.objects.create_user(username='owner', password='pass123')
        Profile.objects.create(user=owner, role=Profile.Role.INSTRUCTOR)
        self.learner = User.objects.create_user(username='learner', password='pass123')
        self.course = Course.objects.create(title='Python 101', responsible=owner, published=True)
        Enrollment.objects.create(course=self.course, user=self.learner)
        self.quiz = authoring.create_quiz(self.course, 'Checkpoint')
        self.questions = [
            authoring.add_question(
                self.quiz,
                f'Question {index}',
                [{'option_text': 'Wrong', 'is_correct': False}, {'option_text': 'Right', 'is_correct': True}],
            )
            for index in range(2)
        ]
        self.lesson = Lesson.objects.create(
            course=self.course, title='Checkpoint', lesson_type=Lesson.LessonType.QUIZ, quiz=self.quiz
        )
        client = APIClient()
        client.force_authenticate(user=self.learner)
        self.api = HttpQuizApi('/api', session=APIClientSession(client), timeout=1)

    def option(self, question, correct):
        return question.options.get(is_correct=correct).id

    def test_take_quiz_and_complete_lesson(self):
        hook = lesson_completion_hook(self.api, self.course.id, self.lesson.id)
        runner = QuizRunner(self.api, self.course.id, self.quiz.id, on_perfect_score=hook)
        self.assertTrue(runner.load())
        self.assertNotIn('is_correct', runner.questions[0]['options'][0])

        runner.start()
        runner.select_option(self.questions[0].id, self.option(self.questions[0], True))
        runner.select_option(self.questions[1].id, self.option(self.questions[1], False))
        runner.next()
        self.assertTrue(runner.submit())
        self.assertEqual(runner.result['summary']['score_percent'], 50)
        self.assertFalse(LessonProgress.objects.filter(lesson=self.lesson).exists())

        runner.retake()
        for question in self.questions:
            runner.select_option(question.id, self.option(question, True))
        runner.next()
        self.assertTrue(runner.submit())
        self.assertEqual(runner.result['attempt']['attempt_number'], 2)
        self.assertEqual(runner.result['summary']['points_earned'], 7)

        progress = LessonProgress.objects.get(lesson=self.lesson, user=self.learner)
        self.assertEqual(progress.status, LessonProgress.Status.COMPLETED)

        history = runner.load_history()
        self.assertEqual(history['summary']['total_attempts'], 2)
        self.assertEqual(history['summary']['total_points_earned'], 7)

    def test_missing_quiz_puts_runner_in_error(self):
        runner = QuizRunner(self.api, self.course.id, 9999)
        self.assertFalse(runner.load())
        self.assertEqual(runner.state, RunnerState.ERROR)
