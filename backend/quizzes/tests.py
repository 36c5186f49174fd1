import threading
from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import IntegrityError, connection
from django.test import TestCase, TransactionTestCase, override_settings, skipUnlessDBFeature
from django.utils import timezone
from rest_framework import serializers
from rest_framework.exceptions import NotFound

from accounts.models import Profile
from courses.models import Course
from . import authoring, scoring
from .exceptions import ConflictError
from .models import Quiz, QuizAttempt, QuizOption, QuizQuestion, QuizResponse
from .serializers import LearnerQuizSerializer, QuizDetailSerializer

User = get_user_model()


def make_options(correct_index=0, count=2):
    return [{'option_text': f'Option {index}', 'is_correct': index == correct_index} for index in range(count)]


class QuizFixtureMixin:
    def setUp(self):
        self.owner = User.objects.create_user(username='owner', password='password')
        self.learner = User.objects.create_user(username='learner', password='password')
        self.course = Course.objects.create(title='Python 101', responsible=self.owner, published=True)

    def make_quiz(self, question_count=2, points=None):
        quiz = authoring.create_quiz(
            self.course,
            'Checkpoint',
            points or {
                'first_try_points': 10,
                'second_try_points': 7,
                'third_try_points': 5,
                'fourth_plus_points': 2,
            },
        )
        for index in range(question_count):
            authoring.add_question(quiz, f'Question {index}', make_options(correct_index=1, count=3))
        return quiz

    def answer_key(self, quiz, correct=None):
        """Map every question to its correct option, or to a wrong one for questions not in ``correct``."""
        answers = {}
        for index, question in enumerate(quiz.questions.all()):
            options = list(question.options.all())
            right = next(option for option in options if option.is_correct)
            wrong = next(option for option in options if not option.is_correct)
            answers[str(question.id)] = right.id if correct is None or index in correct else wrong.id
        return answers

    def points_total(self, user):
        return Profile.objects.get(user=user).total_points


class QuizTestCase(QuizFixtureMixin, TestCase):
    pass


class QuizModelTests(QuizTestCase):
    def test_points_for_attempt_uses_fourth_tier_after_three(self):
        quiz = self.make_quiz(question_count=0)
        self.assertEqual([quiz.points_for_attempt(n) for n in range(1, 7)], [10, 7, 5, 2, 2, 2])
        with self.assertRaises(ValueError):
            quiz.points_for_attempt(0)


class QuizAuthoringTests(QuizTestCase):
    def test_create_quiz_uses_default_points(self):
        quiz = authoring.create_quiz(self.course, '  Final quiz  ', {'first_try_points': 20})
        self.assertEqual(quiz.title, 'Final quiz')
        self.assertEqual(quiz.points_schedule, (20, 7, 5, 2))

    @override_settings(
        QUIZ_SETTINGS={
            'DEFAULT_POINTS': {
                'first_try_points': 4,
                'second_try_points': 3,
                'third_try_points': 2,
                'fourth_plus_points': 1,
            },
            'MIN_OPTIONS': 2,
            'MAX_OPTIONS': 8,
            'ATTEMPT_MAX_RETRIES': 3,
            'RUNNER_TIMEOUT': 10,
        }
    )
    def test_default_points_come_from_settings(self):
        quiz = authoring.create_quiz(self.course, 'Configured')
        self.assertEqual(quiz.points_schedule, (4, 3, 2, 1))

    def test_create_quiz_rejects_bad_title(self):
        for title in ['', '   ', None, 'x' * 256]:
            with self.assertRaises(serializers.ValidationError):
                authoring.create_quiz(self.course, title)
        self.assertFalse(Quiz.objects.exists())

    def test_create_quiz_rejects_bad_points(self):
        for value in [-1, 'ten', True, 1.5]:
            with self.assertRaises(serializers.ValidationError) as ctx:
                authoring.create_quiz(self.course, 'Quiz', {'second_try_points': value})
            self.assertIn('second_try_points', ctx.exception.detail)

    def test_update_quiz(self):
        quiz = self.make_quiz(question_count=0)
        authoring.update_quiz(quiz, {'title': 'Renamed', 'fourth_plus_points': 0})
        quiz.refresh_from_db()
        self.assertEqual(quiz.title, 'Renamed')
        self.assertEqual(quiz.fourth_plus_points, 0)
        self.assertEqual(quiz.first_try_points, 10)

    def test_update_quiz_without_fields_fails(self):
        quiz = self.make_quiz(question_count=0)
        with self.assertRaises(serializers.ValidationError) as ctx:
            authoring.update_quiz(quiz, {'description': 'ignored'})
        self.assertEqual(ctx.exception.detail['detail'], 'No fields to update.')

    def test_questions_are_appended_in_order(self):
        quiz = self.make_quiz(question_count=3)
        self.assertEqual(list(quiz.questions.values_list('sort_order', flat=True)), [0, 1, 2])
        options = quiz.questions.first().options.all()
        self.assertEqual([option.sort_order for option in options], [0, 1, 2])

    def test_question_needs_exactly_one_correct_option(self):
        quiz = self.make_quiz(question_count=0)
        no_correct = [{'option_text': 'A', 'is_correct': False}, {'option_text': 'B', 'is_correct': False}]
        two_correct = [{'option_text': 'A', 'is_correct': True}, {'option_text': 'B', 'is_correct': True}]
        with self.assertRaisesMessage(serializers.ValidationError, 'At least one option must be marked correct.'):
            authoring.add_question(quiz, 'Q', no_correct)
        with self.assertRaisesMessage(serializers.ValidationError, 'Only one option can be marked correct.'):
            authoring.add_question(quiz, 'Q', two_correct)
        self.assertFalse(QuizQuestion.objects.exists())

    def test_question_option_bounds(self):
        quiz = self.make_quiz(question_count=0)
        for options in [make_options(count=1), make_options(count=9), 'A,B', None]:
            with self.assertRaises(serializers.ValidationError):
                authoring.add_question(quiz, 'Q', options)
        authoring.add_question(quiz, 'Two', make_options(count=2))
        authoring.add_question(quiz, 'Eight', make_options(count=8))
        self.assertEqual(quiz.questions.count(), 2)

    def test_question_text_and_option_text_validation(self):
        quiz = self.make_quiz(question_count=0)
        with self.assertRaises(serializers.ValidationError):
            authoring.add_question(quiz, '   ', make_options())
        long_option = [{'option_text': 'x' * 501, 'is_correct': True}, {'option_text': 'B', 'is_correct': False}]
        with self.assertRaises(serializers.ValidationError):
            authoring.add_question(quiz, 'Q', long_option)
        blank_option = [{'option_text': ' ', 'is_correct': True}, {'option_text': 'B', 'is_correct': False}]
        with self.assertRaises(serializers.ValidationError):
            authoring.add_question(quiz, 'Q', blank_option)

    def test_update_question_replaces_options(self):
        quiz = self.make_quiz(question_count=1)
        question = quiz.questions.get()
        authoring.update_question(question, question_text=' Edited ', options=make_options(correct_index=0, count=2))
        question.refresh_from_db()
        self.assertEqual(question.question_text, 'Edited')
        self.assertEqual(question.options.count(), 2)
        self.assertEqual(question.correct_option_ids(), [question.options.first().id])

    def test_invalid_question_update_keeps_options(self):
        quiz = self.make_quiz(question_count=1)
        question = quiz.questions.get()
        before = list(question.options.values_list('id', flat=True))
        with self.assertRaises(serializers.ValidationError):
            authoring.update_question(question, options=make_options(correct_index=5, count=2))
        with self.assertRaises(serializers.ValidationError):
            authoring.update_question(question)
        self.assertEqual(list(question.options.values_list('id', flat=True)), before)

    def test_delete_quiz_cascades(self):
        quiz = self.make_quiz(question_count=2)
        authoring.delete_quiz(quiz)
        self.assertFalse(QuizQuestion.objects.exists())
        self.assertFalse(QuizOption.objects.exists())


class QuizSerializerTests(QuizTestCase):
    def test_learner_shape_hides_correct_flags(self):
        quiz = self.make_quiz(question_count=1)
        data = LearnerQuizSerializer(quiz).data
        option = data['questions'][0]['options'][0]
        self.assertNotIn('is_correct', option)
        self.assertEqual(set(option), {'id', 'option_text', 'sort_order'})

    def test_authoring_shape_includes_correct_flags(self):
        quiz = self.make_quiz(question_count=1)
        data = QuizDetailSerializer(quiz).data
        self.assertEqual(data['question_count'], 1)
        flags = [option['is_correct'] for option in data['questions'][0]['options']]
        self.assertEqual(flags, [False, True, False])


class ScoreComputationTests(TestCase):
    def test_rounds_half_up(self):
        cases = [(3, 4, 75), (2, 3, 67), (1, 3, 33), (1, 8, 13), (0, 5, 0), (5, 5, 100), (1, 200, 1)]
        for correct, total, expected in cases:
            self.assertEqual(scoring.compute_score(correct, total), expected, (correct, total))

    def test_zero_questions_is_an_error(self):
        with self.assertRaises(ValueError):
            scoring.compute_score(0, 0)

    def test_parse_answers(self):
        self.assertEqual(scoring.parse_answers({'1': 5, '2': None, 3: '7'}), {1: 5, 3: 7})
        bad_inputs = [
            [1, 2], 'answers', {'one': 1}, {'1': 'x'}, {'1': True},
            {'1': 2.7}, {'1': 2.0}, {'1': '2.7'}, {'1': '-3'}, {2.0: 1},
        ]
        for bad in bad_inputs:
            with self.assertRaises(serializers.ValidationError):
                scoring.parse_answers(bad)


class SubmitAttemptTests(QuizTestCase):
    def test_end_to_end_points_scenario(self):
        quiz = self.make_quiz(question_count=2)

        first = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz, correct={0}))
        self.assertEqual(first['attempt']['attempt_number'], 1)
        self.assertEqual(first['summary']['score_percent'], 50)
        self.assertEqual(first['summary']['correct_answers'], 1)
        self.assertEqual(first['summary']['points_earned'], 0)
        self.assertFalse(first['summary']['is_first_perfect'])
        self.assertEqual(self.points_total(self.learner), 0)

        second = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(second['attempt']['attempt_number'], 2)
        self.assertEqual(second['summary']['score_percent'], 100)
        self.assertEqual(second['summary']['points_earned'], 7)
        self.assertTrue(second['summary']['is_first_perfect'])
        self.assertEqual(self.points_total(self.learner), 7)

        third = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(third['attempt']['attempt_number'], 3)
        self.assertEqual(third['summary']['score_percent'], 100)
        self.assertEqual(third['summary']['points_earned'], 0)
        self.assertFalse(third['summary']['is_first_perfect'])
        self.assertEqual(self.points_total(self.learner), 7)

    def test_late_first_perfect_earns_fourth_tier(self):
        quiz = self.make_quiz(question_count=1)
        for _ in range(4):
            scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz, correct=set()))
        result = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(result['attempt']['attempt_number'], 5)
        self.assertEqual(result['summary']['points_earned'], 2)
        earned = QuizAttempt.objects.filter(quiz=quiz, user=self.learner).values_list('points_earned', flat=True)
        self.assertEqual(sum(earned), 2)

    def test_zero_schedule_value_still_marks_first_perfect(self):
        quiz = self.make_quiz(
            question_count=1,
            points={'first_try_points': 0, 'second_try_points': 0, 'third_try_points': 0, 'fourth_plus_points': 0},
        )
        result = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertTrue(result['summary']['is_first_perfect'])
        self.assertEqual(result['summary']['points_earned'], 0)

    def test_results_reveal_correct_options_for_every_question(self):
        quiz = self.make_quiz(question_count=2)
        result = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz, correct={1}))
        for question, item in zip(quiz.questions.all(), result['results']):
            self.assertEqual(item['question_id'], question.id)
            self.assertEqual(item['correct_option_ids'], question.correct_option_ids())
        self.assertEqual([item['is_correct'] for item in result['results']], [False, True])

    def test_unanswered_question_counts_as_incorrect(self):
        quiz = self.make_quiz(question_count=2)
        answers = self.answer_key(quiz)
        first_question_id = str(quiz.questions.first().id)
        answers[first_question_id] = None
        result = scoring.submit_attempt(quiz, self.learner, answers)
        self.assertEqual(result['summary']['score_percent'], 50)
        self.assertIsNone(result['results'][0]['selected_option_id'])

    def test_unknown_question_rejects_whole_submission(self):
        quiz = self.make_quiz(question_count=2)
        other = self.make_quiz(question_count=1)
        answers = self.answer_key(quiz)
        answers.update(self.answer_key(other))
        with self.assertRaises(serializers.ValidationError):
            scoring.submit_attempt(quiz, self.learner, answers)
        self.assertFalse(QuizAttempt.objects.exists())

    def test_option_from_another_question_is_rejected(self):
        quiz = self.make_quiz(question_count=2)
        first, second = quiz.questions.all()
        answers = {str(first.id): second.options.first().id, str(second.id): second.options.first().id}
        with self.assertRaisesMessage(serializers.ValidationError, f'Invalid option selected for question {first.id}.'):
            scoring.submit_attempt(quiz, self.learner, answers)
        self.assertFalse(QuizAttempt.objects.exists())

    def test_quiz_without_questions_cannot_be_submitted(self):
        quiz = self.make_quiz(question_count=0)
        with self.assertRaisesMessage(serializers.ValidationError, 'This quiz has no questions.'):
            scoring.submit_attempt(quiz, self.learner, {})

    def test_deleted_quiz_is_not_found(self):
        quiz = self.make_quiz(question_count=1)
        answers = self.answer_key(quiz)
        Quiz.objects.filter(pk=quiz.pk).delete()
        with self.assertRaises(NotFound):
            scoring.submit_attempt(quiz, self.learner, answers)

    def test_attempt_numbers_are_sequential_per_learner(self):
        quiz = self.make_quiz(question_count=1)
        other = User.objects.create_user(username='other', password='password')
        for _ in range(3):
            scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz, correct=set()))
        scoring.submit_attempt(quiz, other, self.answer_key(quiz))
        numbers = list(QuizAttempt.objects.filter(quiz=quiz, user=self.learner).values_list('attempt_number', flat=True))
        self.assertEqual(numbers, [1, 2, 3])
        self.assertEqual(QuizAttempt.objects.get(quiz=quiz, user=other).attempt_number, 1)

    def test_started_at_is_clamped_to_completion(self):
        quiz = self.make_quiz(question_count=1)
        earlier = timezone.now() - timedelta(minutes=5)
        result = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz), started_at=earlier)
        self.assertEqual(result['attempt']['started_at'], earlier)
        future = timezone.now() + timedelta(days=1)
        result = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz), started_at=future)
        self.assertEqual(result['attempt']['started_at'], result['attempt']['completed_at'])

    def test_graded_history_survives_question_edits(self):
        quiz = self.make_quiz(question_count=2)
        scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        question = quiz.questions.first()
        question_id = question.id
        authoring.delete_question(question)
        response = QuizResponse.objects.get(question_ref=question_id)
        self.assertTrue(response.is_correct)
        self.assertEqual(response.question_text, 'Question 0')
        self.assertEqual(QuizAttempt.objects.get().score, 100)

    def test_deleting_quiz_keeps_points_ledger(self):
        quiz = self.make_quiz(question_count=1)
        scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(self.points_total(self.learner), 10)
        authoring.delete_quiz(quiz)
        self.assertFalse(QuizAttempt.objects.exists())
        self.assertEqual(self.points_total(self.learner), 10)


class AttemptConflictTests(QuizTestCase):
    def test_integrity_error_is_retried(self):
        quiz = self.make_quiz(question_count=1)
        record = scoring._record_attempt
        calls = []

        def flaky(*args):
            calls.append(args)
            if len(calls) == 1:
                raise IntegrityError('duplicate attempt number')
            return record(*args)

        with mock.patch('quizzes.scoring._record_attempt', side_effect=flaky):
            result = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(len(calls), 2)
        self.assertEqual(result['attempt']['attempt_number'], 1)

    def test_conflict_after_retries_are_exhausted(self):
        quiz = self.make_quiz(question_count=1)
        with mock.patch(
            'quizzes.scoring._record_attempt', side_effect=IntegrityError('duplicate attempt number')
        ) as record:
            with self.assertRaises(ConflictError):
                scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(record.call_count, 4)
        self.assertFalse(QuizAttempt.objects.exists())

    def test_failed_credit_rolls_back_the_attempt(self):
        quiz = self.make_quiz(question_count=2)
        with mock.patch('quizzes.scoring.credit_points', side_effect=RuntimeError('ledger unavailable')):
            with self.assertRaises(RuntimeError):
                scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertFalse(QuizAttempt.objects.exists())
        self.assertFalse(QuizResponse.objects.exists())
        self.assertEqual(self.points_total(self.learner), 0)

        result = scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(result['attempt']['attempt_number'], 1)
        self.assertEqual(self.points_total(self.learner), 10)


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentSubmitTests(QuizFixtureMixin, TransactionTestCase):
    def submit_together(self, quiz, answers, count=2):
        barrier = threading.Barrier(count)
        results = []
        errors = []

        def submit():
            try:
                barrier.wait()
                results.append(scoring.submit_attempt(quiz, self.learner, answers))
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=submit) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def test_double_submission_numbers_attempts_without_gaps(self):
        quiz = self.make_quiz(question_count=2)
        Profile.objects.create(user=self.learner)

        results, errors = self.submit_together(quiz, self.answer_key(quiz))

        self.assertEqual(errors, [])
        self.assertEqual(sorted(result['attempt']['attempt_number'] for result in results), [1, 2])
        self.assertEqual([result['summary']['is_first_perfect'] for result in results].count(True), 1)
        attempts = QuizAttempt.objects.filter(quiz=quiz).order_by('attempt_number')
        self.assertEqual(list(attempts.values_list('attempt_number', 'points_earned')), [(1, 10), (2, 0)])
        self.assertEqual(self.points_total(self.learner), 10)


class AttemptHistoryTests(QuizTestCase):
    def test_history_is_newest_first_with_summary(self):
        quiz = self.make_quiz(question_count=2)
        scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz, correct={0}))
        scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        history = scoring.attempt_history(quiz, self.learner)
        self.assertEqual(history['quiz'], {'id': quiz.id, 'title': 'Checkpoint'})
        self.assertEqual([attempt['attempt_number'] for attempt in history['attempts']], [2, 1])
        self.assertEqual(
            history['summary'],
            {'total_attempts': 2, 'best_score': 100, 'total_points_earned': 7, 'has_perfect_score': True},
        )

    def test_empty_history(self):
        quiz = self.make_quiz(question_count=1)
        history = scoring.attempt_history(quiz, self.learner)
        self.assertEqual(history['attempts'], [])
        self.assertEqual(history['summary']['best_score'], 0)
        self.assertFalse(history['summary']['has_perfect_score'])

    def test_points_breakdown(self):
        quiz = self.make_quiz(question_count=1)
        scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz, correct=set()))
        scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        scoring.submit_attempt(quiz, self.learner, self.answer_key(quiz))
        self.assertEqual(
            scoring.points_breakdown(self.learner),
            {
                'total_points': 7,
                'quiz': {'total_quiz_points': 7, 'total_attempts': 3, 'perfect_scores': 2},
                'current_badge': None,
                'progress_to_next_badge': None,
                'badges': [],
            },
        )
