"""
Attempt grading and the points-award policy.

A submission is graded against the quiz as it exists when the submission arrives. The score is the
integer percentage of correct answers rounded half up. Points are awarded at most once per learner
per quiz: only the attempt that first reaches 100% earns the schedule value for its attempt number
(attempt 4 and every later attempt share the ``fourth_plus_points`` tier).

Numbering, grading, the attempt insert and the ledger credit happen in one transaction while the
learner's profile row is locked, so two tabs submitting at once cannot share an attempt number or
both collect the first-perfect award.
"""
import logging

from django.conf import settings
from django.db import IntegrityError, models, transaction
from django.utils import timezone
from rest_framework import serializers
from rest_framework.exceptions import NotFound

from accounts.models import Profile, credit_points, ensure_profile
from accounts.ranking import badge_progress
from .exceptions import ConflictError
from .models import Quiz, QuizAttempt, QuizResponse

logger = logging.getLogger(__name__)

PERFECT_SCORE = 100


def compute_score(correct_count: int, total_questions: int) -> int:
    """Integer percentage rounded half up, computed exactly (2 of 3 -> 67, 1 of 8 -> 13)."""
    if total_questions <= 0:
        raise ValueError('total_questions must be positive')
    return (200 * correct_count + total_questions) // (2 * total_questions)


def _parse_id(value, message):
    # Floats are rejected rather than truncated onto a neighbouring id.
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise serializers.ValidationError({'answers': [message]})


def parse_answers(answers) -> dict:
    """Normalise ``{question_id: option_id}`` into integer ids, dropping unanswered (null) entries."""
    if not isinstance(answers, dict):
        raise serializers.ValidationError(
            {'answers': ['Answers must be an object mapping question ids to option ids.']}
        )
    selections = {}
    for question_key, option_value in answers.items():
        question_id = _parse_id(question_key, f'Invalid question id: {question_key}.')
        if option_value is None:
            continue
        selections[question_id] = _parse_id(option_value, f'Invalid option id for question {question_key}.')
    return selections


def grade_answers(questions, selections):
    """
    Grade ``selections`` against ``questions`` (with prefetched options).

    Returns ``(results, correct_count)``. Any id that does not belong to the quiz fails the whole
    submission; a question left unanswered simply counts as incorrect.
    """
    question_ids = {question.id for question in questions}
    unknown = sorted(set(selections) - question_ids)
    if unknown:
        raise serializers.ValidationError({'answers': [f'Question {unknown[0]} does not belong to this quiz.']})

    results = []
    correct_count = 0
    for question in questions:
        options = list(question.options.all())
        correct_ids = [option.id for option in options if option.is_correct]
        selected_id = selections.get(question.id)
        if selected_id is not None and selected_id not in {option.id for option in options}:
            raise serializers.ValidationError(
                {'answers': [f'Invalid option selected for question {question.id}.']}
            )
        is_correct = selected_id is not None and selected_id in correct_ids
        if is_correct:
            correct_count += 1
        results.append(
            {
                'question_id': question.id,
                'question_text': question.question_text,
                'selected_option_id': selected_id,
                'is_correct': is_correct,
                'correct_option_ids': correct_ids,
            }
        )
    return results, correct_count


def points_for(quiz: Quiz, attempt_number: int, score: int, has_prior_perfect: bool) -> int:
    if score != PERFECT_SCORE or has_prior_perfect:
        return 0
    return quiz.points_for_attempt(attempt_number)


def submit_attempt(quiz: Quiz, user, answers, started_at=None) -> dict:
    """Grade and record one attempt, returning the attempt summary and per-question results."""
    selections = parse_answers(answers)
    ensure_profile(user)
    max_retries = settings.QUIZ_SETTINGS['ATTEMPT_MAX_RETRIES']
    for retry in range(max_retries + 1):
        try:
            return _record_attempt(quiz, user, selections, started_at)
        except IntegrityError:
            logger.warning(
                'Attempt number conflict on quiz %s for %s (try %s of %s)',
                quiz.id,
                user.get_username(),
                retry + 1,
                max_retries + 1,
            )
    raise ConflictError()


@transaction.atomic
def _record_attempt(quiz: Quiz, user, selections, started_at):
    # Serialises submissions from the same learner; other learners never wait on this row.
    Profile.objects.select_for_update().get(user=user)
    if not Quiz.objects.filter(pk=quiz.pk).exists():
        raise NotFound('Quiz not found.')

    questions = list(quiz.questions.prefetch_related('options'))
    if not questions:
        raise serializers.ValidationError({'detail': 'This quiz has no questions.'})
    results, correct_count = grade_answers(questions, selections)
    score = compute_score(correct_count, len(questions))

    history = QuizAttempt.objects.filter(quiz=quiz, user=user)
    attempt_number = history.count() + 1
    has_prior_perfect = history.filter(score=PERFECT_SCORE).exists()
    is_first_perfect = score == PERFECT_SCORE and not has_prior_perfect
    points_earned = points_for(quiz, attempt_number, score, has_prior_perfect)

    completed_at = timezone.now()
    attempt = QuizAttempt.objects.create(
        quiz=quiz,
        user=user,
        attempt_number=attempt_number,
        score=score,
        points_earned=points_earned,
        started_at=min(started_at, completed_at) if started_at else completed_at,
        completed_at=completed_at,
    )
    QuizResponse.objects.bulk_create(
        [
            QuizResponse(
                attempt=attempt,
                question_ref=result['question_id'],
                question_text=result['question_text'],
                selected_option_ref=result['selected_option_id'],
                is_correct=result['is_correct'],
                correct_option_refs=result['correct_option_ids'],
                sort_order=index,
            )
            for index, result in enumerate(results)
        ]
    )
    credit_points(user, points_earned)
    logger.info(
        'Recorded attempt %s on quiz %s for %s: score=%s points=%s',
        attempt_number,
        quiz.id,
        user.get_username(),
        score,
        points_earned,
    )

    return {
        'attempt': {
            'id': attempt.id,
            'attempt_number': attempt.attempt_number,
            'score': attempt.score,
            'points_earned': attempt.points_earned,
            'started_at': attempt.started_at,
            'completed_at': attempt.completed_at,
        },
        'summary': {
            'total_questions': len(questions),
            'correct_answers': correct_count,
            'score_percent': score,
            'points_earned': points_earned,
            'is_first_perfect': is_first_perfect,
        },
        'results': [
            {
                'question_id': result['question_id'],
                'selected_option_id': result['selected_option_id'],
                'is_correct': result['is_correct'],
                'correct_option_ids': result['correct_option_ids'],
            }
            for result in results
        ],
    }


def attempt_history(quiz: Quiz, user) -> dict:
    attempts = list(QuizAttempt.objects.filter(quiz=quiz, user=user).order_by('-attempt_number'))
    return {
        'quiz': {'id': quiz.id, 'title': quiz.title},
        'summary': {
            'total_attempts': len(attempts),
            'best_score': max((attempt.score for attempt in attempts), default=0),
            'total_points_earned': sum(attempt.points_earned for attempt in attempts),
            'has_perfect_score': any(attempt.score == PERFECT_SCORE for attempt in attempts),
        },
        'attempts': [
            {
                'id': attempt.id,
                'attempt_number': attempt.attempt_number,
                'score': attempt.score,
                'points_earned': attempt.points_earned,
                'started_at': attempt.started_at,
                'completed_at': attempt.completed_at,
            }
            for attempt in attempts
        ],
    }


def points_breakdown(user) -> dict:
    profile = ensure_profile(user)
    totals = QuizAttempt.objects.filter(user=user).aggregate(
        total_quiz_points=models.Sum('points_earned'),
        total_attempts=models.Count('id'),
        perfect_scores=models.Count('id', filter=models.Q(score=PERFECT_SCORE)),
    )
    return {
        'total_points': profile.total_points,
        'quiz': {
            'total_quiz_points': totals['total_quiz_points'] or 0,
            'total_attempts': totals['total_attempts'],
            'perfect_scores': totals['perfect_scores'],
        },
        **badge_progress(profile.total_points),
    }
