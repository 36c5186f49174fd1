from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import serializers

from quizzes.models import Quiz, QuizAttempt
from .models import Course, Enrollment, Lesson, LessonProgress
from .services import enroll_user, record_lesson_progress, reorder_lessons

User = get_user_model()


class CourseServiceTestCase(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username='owner', password='password')
        self.learner = User.objects.create_user(username='learner', password='password')
        self.course = Course.objects.create(title='Python 101', responsible=self.owner, published=True)
        self.quiz = Quiz.objects.create(course=self.course, title='Checkpoint')
        self.video = Lesson.objects.create(
            course=self.course, title='Intro', lesson_type=Lesson.LessonType.VIDEO, sort_order=0
        )
        self.quiz_lesson = Lesson.objects.create(
            course=self.course,
            title='Checkpoint',
            lesson_type=Lesson.LessonType.QUIZ,
            quiz=self.quiz,
            sort_order=1,
        )

    def _record_attempt(self, score, attempt_number=1):
        now = timezone.now()
        return QuizAttempt.objects.create(
            quiz=self.quiz,
            user=self.learner,
            attempt_number=attempt_number,
            score=score,
            started_at=now,
            completed_at=now,
        )


class EnrollmentTests(CourseServiceTestCase):
    def test_enroll_is_idempotent(self):
        first = enroll_user(self.course, self.learner)
        second = enroll_user(self.course, self.learner)
        self.assertEqual(first, second)
        self.assertEqual(first.status, Enrollment.Status.NOT_STARTED)
        self.assertEqual(Enrollment.objects.filter(course=self.course).count(), 1)

    def test_cannot_enroll_in_unpublished_course(self):
        draft = Course.objects.create(title='Draft', responsible=self.owner)
        with self.assertRaises(serializers.ValidationError):
            enroll_user(draft, self.learner)


class LessonProgressTests(CourseServiceTestCase):
    def setUp(self):
        super().setUp()
        self.enrollment = enroll_user(self.course, self.learner)

    def test_requires_enrollment(self):
        stranger = User.objects.create_user(username='stranger', password='password')
        with self.assertRaises(serializers.ValidationError):
            record_lesson_progress(stranger, self.video, LessonProgress.Status.IN_PROGRESS)

    def test_rejects_unknown_status(self):
        with self.assertRaises(serializers.ValidationError):
            record_lesson_progress(self.learner, self.video, 'finished')

    def test_first_progress_starts_enrollment(self):
        progress = record_lesson_progress(self.learner, self.video, LessonProgress.Status.IN_PROGRESS)
        self.assertIsNotNone(progress.started_at)
        self.assertIsNone(progress.completed_at)
        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.status, Enrollment.Status.IN_PROGRESS)
        self.assertIsNotNone(self.enrollment.started_at)

    def test_completed_progress_never_regresses(self):
        record_lesson_progress(self.learner, self.video, LessonProgress.Status.COMPLETED)
        progress = record_lesson_progress(self.learner, self.video, LessonProgress.Status.IN_PROGRESS)
        self.assertEqual(progress.status, LessonProgress.Status.COMPLETED)
        self.assertIsNotNone(progress.completed_at)

    def test_quiz_lesson_needs_perfect_score(self):
        self._record_attempt(score=50)
        with self.assertRaises(serializers.ValidationError):
            record_lesson_progress(self.learner, self.quiz_lesson, LessonProgress.Status.COMPLETED)

        self._record_attempt(score=100, attempt_number=2)
        progress = record_lesson_progress(self.learner, self.quiz_lesson, LessonProgress.Status.COMPLETED)
        self.assertEqual(progress.status, LessonProgress.Status.COMPLETED)

    def test_completing_every_lesson_completes_enrollment(self):
        self._record_attempt(score=100)
        record_lesson_progress(self.learner, self.video, LessonProgress.Status.COMPLETED)
        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.status, Enrollment.Status.IN_PROGRESS)

        record_lesson_progress(self.learner, self.quiz_lesson, LessonProgress.Status.COMPLETED)
        self.enrollment.refresh_from_db()
        self.assertEqual(self.enrollment.status, Enrollment.Status.COMPLETED)
        self.assertIsNotNone(self.enrollment.completed_at)


class ReorderLessonsTests(CourseServiceTestCase):
    def test_reorder_sets_positions(self):
        reorder_lessons(self.course, [self.quiz_lesson.id, self.video.id])
        self.assertEqual(list(self.course.lessons.values_list('id', flat=True)), [self.quiz_lesson.id, self.video.id])

    def test_reorder_requires_every_lesson_once(self):
        with self.assertRaises(serializers.ValidationError):
            reorder_lessons(self.course, [self.video.id])
        with self.assertRaises(serializers.ValidationError):
            reorder_lessons(self.course, [self.video.id, self.video.id])
        with self.assertRaises(serializers.ValidationError):
            reorder_lessons(self.course, 'not-a-list')

    def test_deleting_quiz_keeps_lesson(self):
        self.quiz.delete()
        self.quiz_lesson.refresh_from_db()
        self.assertIsNone(self.quiz_lesson.quiz)
