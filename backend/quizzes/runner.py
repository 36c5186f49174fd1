"""
Learner-side quiz runner.

``QuizRunner`` is the finite-state machine a quiz-taking client drives::

    loading -> ready -> taking -> submitting -> results
       |                   ^          |   |        |
       v                   +----------+   |        +--> ready (back to overview)
     error <------------------------------+        +--> taking (retake)

Every user action is an event looked up in ``TRANSITIONS``; an event the current state does not
accept raises ``InvalidTransition``. That is how conflicting actions are disabled while a
submission is in flight.

The runner never sees correctness data before it submits: the quiz definition it loads carries
options without ``is_correct`` and only the graded attempt tells it which options were right.
"""
import logging
from datetime import datetime, timezone
from enum import Enum

from rest_framework.exceptions import APIException, NotFound

from .exceptions import InvalidTransition
from .scoring import PERFECT_SCORE

logger = logging.getLogger(__name__)


class RunnerState(str, Enum):
    LOADING = 'loading'
    READY = 'ready'
    TAKING = 'taking'
    SUBMITTING = 'submitting'
    RESULTS = 'results'
    ERROR = 'error'


TRANSITIONS = {
    (RunnerState.LOADING, 'loaded'): RunnerState.READY,
    (RunnerState.LOADING, 'load_failed'): RunnerState.ERROR,
    (RunnerState.ERROR, 'retry'): RunnerState.LOADING,
    (RunnerState.READY, 'start'): RunnerState.TAKING,
    (RunnerState.TAKING, 'select'): RunnerState.TAKING,
    (RunnerState.TAKING, 'navigate'): RunnerState.TAKING,
    (RunnerState.TAKING, 'submit'): RunnerState.SUBMITTING,
    (RunnerState.SUBMITTING, 'accepted'): RunnerState.RESULTS,
    (RunnerState.SUBMITTING, 'rejected'): RunnerState.TAKING,
    (RunnerState.SUBMITTING, 'quiz_gone'): RunnerState.ERROR,
    (RunnerState.RESULTS, 'retake'): RunnerState.TAKING,
    (RunnerState.RESULTS, 'back_to_overview'): RunnerState.READY,
}


def describe_error(exc, fallback):
    detail = getattr(exc, 'detail', None)
    if isinstance(detail, dict):
        detail = detail.get('detail') or next(iter(detail.values()), None)
    if isinstance(detail, list):
        detail = detail[0] if detail else None
    return str(detail) if detail else fallback


class QuizRunner:
    """
    Drives one learner through one quiz.

    ``api`` is a transport exposing ``fetch_quiz``, ``submit_attempt`` and ``fetch_history``
    (see ``quizzes.client.HttpQuizApi``). ``on_perfect_score`` is called once for every submission
    that comes back with a score of exactly 100.
    """

    def __init__(self, api, course_id, quiz_id, on_perfect_score=None):
        self.api = api
        self.course_id = course_id
        self.quiz_id = quiz_id
        self.on_perfect_score = on_perfect_score
        self.state = RunnerState.LOADING
        self.quiz = None
        self.answers = {}
        self.current_index = 0
        self.started_at = None
        self.result = None
        self.history = None
        self.error = ''
        self.unanswered_count = 0

    def _fire(self, event):
        try:
            next_state = TRANSITIONS[(self.state, event)]
        except KeyError:
            raise InvalidTransition(self.state.value, event) from None
        self.state = next_state

    def _require(self, state, event):
        if self.state is not state:
            raise InvalidTransition(self.state.value, event)

    @property
    def questions(self):
        return self.quiz['questions'] if self.quiz else []

    @property
    def total_questions(self):
        return len(self.questions)

    @property
    def is_empty(self):
        """The quiz loaded but has nothing to answer; the overview shows an empty state."""
        return self.quiz is not None and not self.questions

    @property
    def can_start(self):
        return self.state is RunnerState.READY and not self.is_empty

    @property
    def current_question(self):
        if self.state is not RunnerState.TAKING or not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self):
        return self.total_questions > 0 and self.current_index == self.total_questions - 1

    @property
    def can_submit(self):
        return self.state is RunnerState.TAKING and self.is_last_question

    @property
    def answered_count(self):
        return sum(1 for question in self.questions if question['id'] in self.answers)

    def load(self):
        self._require(RunnerState.LOADING, 'load')
        self.error = ''
        try:
            quiz = self.api.fetch_quiz(self.course_id, self.quiz_id)
        except APIException as exc:
            logger.warning('Failed to load quiz %s: %s', self.quiz_id, exc)
            self.error = describe_error(exc, 'Failed to load quiz.')
            self._fire('load_failed')
            return False
        quiz = dict(quiz)
        quiz['questions'] = sorted(quiz.get('questions') or [], key=lambda question: question['sort_order'])
        self.quiz = quiz
        self._fire('loaded')
        return True

    def retry(self):
        self._fire('retry')
        return self.load()

    def start(self):
        if self.is_empty:
            raise InvalidTransition(self.state.value, 'start')
        self._fire('start')
        self._reset_attempt()

    def retake(self):
        self._fire('retake')
        self._reset_attempt()

    def back_to_overview(self):
        self._fire('back_to_overview')

    def _reset_attempt(self):
        self.answers = {}
        self.current_index = 0
        self.result = None
        self.error = ''
        self.unanswered_count = 0
        self.started_at = datetime.now(timezone.utc)

    def select_option(self, question_id, option_id):
        self._require(RunnerState.TAKING, 'select')
        question = next((q for q in self.questions if q['id'] == question_id), None)
        if question is None:
            raise ValueError(f'Question {question_id} is not part of this quiz')
        if option_id not in {option['id'] for option in question['options']}:
            raise ValueError(f'Option {option_id} does not belong to question {question_id}')
        self._fire('select')
        self.answers[question_id] = option_id

    def go_to(self, index):
        self._require(RunnerState.TAKING, 'navigate')
        self._fire('navigate')
        self.current_index = max(0, min(index, self.total_questions - 1))

    def next(self):
        self.go_to(self.current_index + 1)

    def previous(self):
        self.go_to(self.current_index - 1)

    def submit(self):
        """
        Submit the attempt. Returns ``True`` once graded results are in.

        With unanswered questions nothing is sent: the runner reports how many remain, jumps to
        the first one and returns ``False``.
        """
        if not self.can_submit:
            raise InvalidTransition(self.state.value, 'submit')
        unanswered = [index for index, question in enumerate(self.questions) if question['id'] not in self.answers]
        if unanswered:
            count = len(unanswered)
            self.unanswered_count = count
            self.error = f"Please answer all questions. {count} question{'s' if count > 1 else ''} remaining."
            self.current_index = unanswered[0]
            return False

        self.error = ''
        self.unanswered_count = 0
        self._fire('submit')
        try:
            result = self.api.submit_attempt(
                self.course_id,
                self.quiz_id,
                dict(self.answers),
                started_at=self.started_at,
            )
        except NotFound as exc:
            logger.warning('Quiz %s disappeared before submission', self.quiz_id)
            self.error = describe_error(exc, 'This quiz is no longer available.')
            self._fire('quiz_gone')
            return False
        except APIException as exc:
            logger.warning('Submission of quiz %s failed: %s', self.quiz_id, exc)
            self.error = describe_error(exc, 'Failed to submit quiz.')
            self._fire('rejected')
            return False

        self.result = result
        self._fire('accepted')
        if result['summary']['score_percent'] == PERFECT_SCORE and self.on_perfect_score:
            self.on_perfect_score()
        return True

    def dismiss_error(self):
        self.error = ''

    def load_history(self):
        try:
            self.history = self.api.fetch_history(self.course_id, self.quiz_id)
        except APIException as exc:
            logger.warning('Failed to load attempt history for quiz %s: %s', self.quiz_id, exc)
            self.history = None
        return self.history


def lesson_completion_hook(api, course_id, lesson_id):
    """Build an ``on_perfect_score`` callback that marks a quiz lesson completed."""

    def on_perfect_score():
        try:
            api.complete_lesson(course_id, lesson_id)
        except APIException as exc:
            logger.warning('Could not record completion of lesson %s', lesson_id, exc_info=exc)

    return on_perfect_score
