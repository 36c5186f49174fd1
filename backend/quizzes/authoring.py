"""
Instructor-side quiz authoring.

Every write validates the quiz/question/option invariants itself before touching the database, so
the rules hold no matter which client produced the payload:

* quiz titles are non-empty and at most 255 characters;
* the four point values are non-negative integers;
* a question has non-empty text and between ``MIN_OPTIONS`` and ``MAX_OPTIONS`` options;
* exactly one option per question is marked correct.

Questions keep the order they were added in; there is deliberately no reorder operation.
"""
import logging

from django.conf import settings
from django.db import models, transaction
from rest_framework import serializers

from .models import Quiz, QuizOption, QuizQuestion

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255
OPTION_TEXT_MAX_LENGTH = 500


def clean_title(value):
    if not isinstance(value, str) or not value.strip():
        raise serializers.ValidationError({'title': ['Title is required.']})
    title = value.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise serializers.ValidationError({'title': [f'Title must be {TITLE_MAX_LENGTH} characters or less.']})
    return title


def clean_points(field, value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise serializers.ValidationError({field: [f'{field} must be a non-negative integer.']})
    return value


def clean_question_text(value):
    if not isinstance(value, str) or not value.strip():
        raise serializers.ValidationError({'question_text': ['Question text is required.']})
    return value.strip()


def clean_options(options):
    min_options = settings.QUIZ_SETTINGS['MIN_OPTIONS']
    max_options = settings.QUIZ_SETTINGS['MAX_OPTIONS']
    if not isinstance(options, (list, tuple)):
        raise serializers.ValidationError({'options': ['Options must be a list.']})
    if len(options) < min_options:
        raise serializers.ValidationError({'options': [f'At least {min_options} options are required.']})
    if len(options) > max_options:
        raise serializers.ValidationError({'options': [f'At most {max_options} options are allowed.']})

    cleaned = []
    for index, option in enumerate(options, start=1):
        if not isinstance(option, dict):
            raise serializers.ValidationError({'options': [f'Option {index} is invalid.']})
        text = option.get('option_text')
        if not isinstance(text, str) or not text.strip():
            raise serializers.ValidationError({'options': [f'Option {index} text is required.']})
        text = text.strip()
        if len(text) > OPTION_TEXT_MAX_LENGTH:
            raise serializers.ValidationError(
                {'options': [f'Option {index} text must be {OPTION_TEXT_MAX_LENGTH} characters or less.']}
            )
        is_correct = option.get('is_correct', False)
        if not isinstance(is_correct, bool):
            raise serializers.ValidationError({'options': [f'Option {index} is_correct must be true or false.']})
        cleaned.append({'option_text': text, 'is_correct': is_correct})

    correct_count = sum(1 for option in cleaned if option['is_correct'])
    if correct_count == 0:
        raise serializers.ValidationError({'options': ['At least one option must be marked correct.']})
    if correct_count > 1:
        raise serializers.ValidationError({'options': ['Only one option can be marked correct.']})
    return cleaned


def _default_points():
    return settings.QUIZ_SETTINGS['DEFAULT_POINTS']


@transaction.atomic
def create_quiz(course, title, points=None) -> Quiz:
    points = points or {}
    values = {'title': clean_title(title)}
    defaults = _default_points()
    for field in Quiz.POINT_FIELDS:
        value = points.get(field)
        values[field] = defaults[field] if value is None else clean_points(field, value)
    quiz = Quiz.objects.create(course=course, **values)
    logger.info('Created quiz %s on course %s', quiz.id, course.id)
    return quiz


@transaction.atomic
def update_quiz(quiz: Quiz, patch) -> Quiz:
    updates = {}
    if 'title' in patch:
        updates['title'] = clean_title(patch['title'])
    for field in Quiz.POINT_FIELDS:
        if field in patch:
            updates[field] = clean_points(field, patch[field])
    if not updates:
        raise serializers.ValidationError({'detail': 'No fields to update.'})
    for field, value in updates.items():
        setattr(quiz, field, value)
    quiz.save(update_fields=[*updates, 'updated_at'])
    return quiz


@transaction.atomic
def delete_quiz(quiz: Quiz) -> None:
    quiz_id = quiz.id
    attempt_count = quiz.attempts.count()
    quiz.delete()
    logger.info('Deleted quiz %s with %s attempts', quiz_id, attempt_count)


def _create_options(question, options):
    QuizOption.objects.bulk_create(
        [
            QuizOption(
                question=question,
                option_text=option['option_text'],
                is_correct=option['is_correct'],
                sort_order=index,
            )
            for index, option in enumerate(options)
        ]
    )


@transaction.atomic
def add_question(quiz: Quiz, question_text, options) -> QuizQuestion:
    text = clean_question_text(question_text)
    cleaned_options = clean_options(options)
    last_order = QuizQuestion.objects.filter(quiz=quiz).aggregate(models.Max('sort_order'))['sort_order__max']
    question = QuizQuestion.objects.create(
        quiz=quiz,
        question_text=text,
        sort_order=0 if last_order is None else last_order + 1,
    )
    _create_options(question, cleaned_options)
    return question


@transaction.atomic
def update_question(question: QuizQuestion, question_text=None, options=None) -> QuizQuestion:
    """Update the text and/or replace the whole option set of ``question``."""
    if question_text is None and options is None:
        raise serializers.ValidationError({'detail': 'No fields to update.'})
    if question_text is not None:
        question.question_text = clean_question_text(question_text)
        question.save(update_fields=['question_text'])
    if options is not None:
        cleaned_options = clean_options(options)
        question.options.all().delete()
        _create_options(question, cleaned_options)
    return question


@transaction.atomic
def delete_question(question: QuizQuestion) -> None:
    question.delete()
