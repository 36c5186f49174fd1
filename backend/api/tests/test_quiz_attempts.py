from unittest import mock

from django.contrib.auth.models import User
from django.db import IntegrityError
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Profile
from courses.models import Course, Enrollment
from quizzes import authoring
from quizzes.models import QuizAttempt


class LearnerQuizTestCase(APITestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username='owner', password='pass123')
        Profile.objects.create(user=self.owner, role=Profile.Role.INSTRUCTOR)
        self.learner = User.objects.create_user(username='learner', password='pass123')
        self.course = Course.objects.create(title='Python 101', responsible=self.owner, published=True)
        Enrollment.objects.create(course=self.course, user=self.learner)
        self.quiz = authoring.create_quiz(self.course, 'Checkpoint')
        self.questions = []
        for index in range(2):
            self.questions.append(
                authoring.add_question(
                    self.quiz,
                    f'Question {index}',
                    [
                        {'option_text': 'Wrong', 'is_correct': False},
                        {'option_text': 'Right', 'is_correct': True},
                    ],
                )
            )
        self.client.force_authenticate(user=self.learner)
        self.quiz_url = reverse('quiz-detail', args=[self.course.id, self.quiz.id])
        self.submit_url = reverse('quiz-attempt-submit', args=[self.course.id, self.quiz.id])
        self.history_url = reverse('quiz-attempt-history', args=[self.course.id, self.quiz.id])

    def answers(self, correct=(0, 1)):
        result = {}
        for index, question in enumerate(self.questions):
            wrong, right = question.options.all()
            result[str(question.id)] = right.id if index in correct else wrong.id
        return result


class LearnerQuizDetailTests(LearnerQuizTestCase):
    def test_quiz_hides_correct_flags(self):
        response = self.client.get(self.quiz_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['title'], 'Checkpoint')
        self.assertEqual(len(response.data['questions']), 2)
        for question in response.data['questions']:
            for option in question['options']:
                self.assertNotIn('is_correct', option)

    def test_unpublished_course_is_not_found(self):
        self.course.published = False
        self.course.save()
        response = self.client.get(self.quiz_url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_requires_enrollment(self):
        Enrollment.objects.all().delete()
        response = self.client.get(self.quiz_url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post(self.submit_url, {'answers': self.answers()}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_quiz_from_another_course_is_not_found(self):
        other_course = Course.objects.create(title='Other', responsible=self.owner, published=True)
        url = reverse('quiz-detail', args=[other_course.id, self.quiz.id])
        Enrollment.objects.create(course=other_course, user=self.learner)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class QuizAttemptSubmitTests(LearnerQuizTestCase):
    def test_points_scenario_through_the_api(self):
        response = self.client.post(self.submit_url, {'answers': self.answers(correct=(0,))}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['attempt']['attempt_number'], 1)
        self.assertEqual(response.data['summary']['score_percent'], 50)
        self.assertEqual(response.data['summary']['points_earned'], 0)
        self.assertFalse(response.data['summary']['is_first_perfect'])

        response = self.client.post(self.submit_url, {'answers': self.answers()}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['attempt']['points_earned'], 7)
        self.assertTrue(response.data['summary']['is_first_perfect'])

        response = self.client.post(self.submit_url, {'answers': self.answers()}, format='json')
        self.assertEqual(response.data['attempt']['attempt_number'], 3)
        self.assertEqual(response.data['summary']['points_earned'], 0)

        points = self.client.get(reverse('me-points'))
        self.assertEqual(points.status_code, status.HTTP_200_OK)
        self.assertEqual(points.data['total_points'], 7)
        self.assertEqual(points.data['quiz'], {'total_quiz_points': 7, 'total_attempts': 3, 'perfect_scores': 2})

    def test_results_carry_correct_option_ids(self):
        response = self.client.post(self.submit_url, {'answers': self.answers(correct=())}, format='json')
        results = response.data['results']
        self.assertEqual(len(results), 2)
        for question, result in zip(self.questions, results):
            self.assertEqual(result['question_id'], question.id)
            self.assertFalse(result['is_correct'])
            self.assertEqual(result['correct_option_ids'], question.correct_option_ids())

    def test_started_at_is_accepted(self):
        response = self.client.post(
            self.submit_url,
            {'answers': self.answers(), 'started_at': '2020-01-01T10:00:00Z'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(QuizAttempt.objects.get().started_at.year, 2020)

    def test_invalid_submissions(self):
        foreign = authoring.add_question(
            authoring.create_quiz(self.course, 'Other'),
            'Elsewhere',
            [{'option_text': 'A', 'is_correct': True}, {'option_text': 'B', 'is_correct': False}],
        )
        cases = [
            {},
            {'answers': ['not', 'a', 'map']},
            {'answers': {str(foreign.id): foreign.options.first().id}},
            {'answers': {str(self.questions[0].id): foreign.options.first().id}},
            {'answers': {str(self.questions[0].id): self.questions[0].options.last().id + 0.5}},
        ]
        for payload in cases:
            response = self.client.post(self.submit_url, payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, payload)
            self.assertIn('answers', response.data)
        self.assertFalse(QuizAttempt.objects.exists())

    def test_conflict_is_reported(self):
        with mock.patch('quizzes.scoring._record_attempt', side_effect=IntegrityError('duplicate')):
            response = self.client.post(self.submit_url, {'answers': self.answers()}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(QuizAttempt.objects.exists())

    def test_deleted_quiz_is_not_found(self):
        self.quiz.delete()
        response = self.client.post(self.submit_url, {'answers': {}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class QuizAttemptHistoryTests(LearnerQuizTestCase):
    def test_history(self):
        self.client.post(self.submit_url, {'answers': self.answers(correct=(1,))}, format='json')
        self.client.post(self.submit_url, {'answers': self.answers()}, format='json')
        response = self.client.get(self.history_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['quiz']['id'], self.quiz.id)
        self.assertEqual([attempt['attempt_number'] for attempt in response.data['attempts']], [2, 1])
        self.assertEqual(response.data['summary']['best_score'], 100)
        self.assertEqual(response.data['summary']['total_points_earned'], 7)
        self.assertTrue(response.data['summary']['has_perfect_score'])

    def test_history_is_per_learner(self):
        self.client.post(self.submit_url, {'answers': self.answers()}, format='json')
        other = User.objects.create_user(username='other', password='pass123')
        Enrollment.objects.create(course=self.course, user=other)
        self.client.force_authenticate(user=other)
        response = self.client.get(self.history_url)
        self.assertEqual(response.data['summary']['total_attempts'], 0)
        self.assertEqual(response.data['attempts'], [])
