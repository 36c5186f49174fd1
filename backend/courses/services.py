import logging

from django.db import transaction
from django.utils import timezone
from rest_framework import serializers

from quizzes.models import QuizAttempt
from quizzes.scoring import PERFECT_SCORE
from .models import Course, Enrollment, Lesson, LessonProgress

logger = logging.getLogger(__name__)


def enroll_user(course: Course, user) -> Enrollment:
    if not course.published:
        raise serializers.ValidationError({'detail': 'This course is not open for enrollment.'})
    enrollment, created = Enrollment.objects.get_or_create(course=course, user=user)
    if created:
        logger.info('Enrolled %s in course %s', user.get_username(), course.id)
    return enrollment


def has_perfect_quiz_score(user, lesson: Lesson) -> bool:
    if lesson.quiz_id is None:
        return False
    return QuizAttempt.objects.filter(quiz_id=lesson.quiz_id, user=user, score=PERFECT_SCORE).exists()


@transaction.atomic
def record_lesson_progress(user, lesson: Lesson, status: str) -> LessonProgress:
    """
    Move a learner's progress on ``lesson`` forward to ``status``.

    Completed progress never regresses. Quiz lessons only complete once the learner holds a
    100% attempt on the lesson's quiz. The enrollment follows along: the first lesson started moves
    it to in_progress and completing the last lesson of the course completes it.
    """
    if status not in LessonProgress.Status.values:
        raise serializers.ValidationError(
            {'status': ['Status must be one of: not_started, in_progress, completed']}
        )
    enrollment = (
        Enrollment.objects.select_for_update().filter(course_id=lesson.course_id, user=user).first()
    )
    if enrollment is None:
        raise serializers.ValidationError({'detail': 'You must be enrolled in this course to track progress.'})
    if status == LessonProgress.Status.COMPLETED and lesson.is_quiz and not has_perfect_quiz_score(user, lesson):
        raise serializers.ValidationError(
            {'status': ['Quiz lessons are completed by scoring 100% on the quiz.']}
        )

    now = timezone.now()
    progress, _ = LessonProgress.objects.get_or_create(lesson=lesson, user=user)
    if progress.status == LessonProgress.Status.COMPLETED and status != LessonProgress.Status.COMPLETED:
        return progress

    progress.status = status
    if status != LessonProgress.Status.NOT_STARTED and progress.started_at is None:
        progress.started_at = now
    if status == LessonProgress.Status.COMPLETED:
        progress.completed_at = now
    progress.save(update_fields=['status', 'started_at', 'completed_at'])

    if status != LessonProgress.Status.NOT_STARTED and enrollment.status == Enrollment.Status.NOT_STARTED:
        enrollment.status = Enrollment.Status.IN_PROGRESS
        enrollment.started_at = now
        enrollment.save(update_fields=['status', 'started_at'])

    if status == LessonProgress.Status.COMPLETED:
        _complete_enrollment_if_done(enrollment, now)
    return progress


def _complete_enrollment_if_done(enrollment: Enrollment, now) -> None:
    if enrollment.status == Enrollment.Status.COMPLETED:
        return
    lesson_ids = set(Lesson.objects.filter(course_id=enrollment.course_id).values_list('id', flat=True))
    completed_ids = set(
        LessonProgress.objects.filter(
            user_id=enrollment.user_id,
            lesson_id__in=lesson_ids,
            status=LessonProgress.Status.COMPLETED,
        ).values_list('lesson_id', flat=True)
    )
    if lesson_ids and lesson_ids == completed_ids:
        enrollment.status = Enrollment.Status.COMPLETED
        enrollment.completed_at = now
        if enrollment.started_at is None:
            enrollment.started_at = now
        enrollment.save(update_fields=['status', 'started_at', 'completed_at'])
        logger.info('Enrollment %s completed course %s', enrollment.id, enrollment.course_id)


@transaction.atomic
def reorder_lessons(course: Course, lesson_ids) -> list:
    if not isinstance(lesson_ids, (list, tuple)):
        raise serializers.ValidationError({'lesson_ids': ['lesson_ids must be a list of ids.']})
    lessons = {lesson.id: lesson for lesson in course.lessons.select_for_update()}
    try:
        requested = [int(lesson_id) for lesson_id in lesson_ids]
    except (TypeError, ValueError) as exc:
        raise serializers.ValidationError({'lesson_ids': ['lesson_ids must be a list of ids.']}) from exc
    if len(requested) != len(set(requested)) or set(requested) != set(lessons):
        raise serializers.ValidationError(
            {'lesson_ids': ['Provide every lesson of this course exactly once.']}
        )
    ordered = []
    for position, lesson_id in enumerate(requested):
        lesson = lessons[lesson_id]
        lesson.sort_order = position
        ordered.append(lesson)
    Lesson.objects.bulk_update(ordered, ['sort_order'])
    return ordered
