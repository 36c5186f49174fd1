from django.conf import settings
from django.db import models


class Quiz(models.Model):
    course = models.ForeignKey('courses.Course', on_delete=models.CASCADE, related_name='quizzes')
    title = models.CharField(max_length=255)
    first_try_points = models.PositiveIntegerField(default=10)
    second_try_points = models.PositiveIntegerField(default=7)
    third_try_points = models.PositiveIntegerField(default=5)
    fourth_plus_points = models.PositiveIntegerField(default=2)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    POINT_FIELDS = ('first_try_points', 'second_try_points', 'third_try_points', 'fourth_plus_points')

    class Meta:
        ordering = ['created_at']

    def __str__(self) -> str:
        return self.title

    @property
    def points_schedule(self) -> tuple:
        return tuple(getattr(self, field) for field in self.POINT_FIELDS)

    def points_for_attempt(self, attempt_number: int) -> int:
        """Points a first perfect score earns on ``attempt_number`` (attempt 4 and later share a tier)."""
        if attempt_number < 1:
            raise ValueError('attempt_number is 1-based')
        return self.points_schedule[min(attempt_number, 4) - 1]


class QuizQuestion(models.Model):
    quiz = models.ForeignKey(Quiz, on_delete=models.CASCADE, related_name='questions')
    question_text = models.TextField()
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['sort_order', 'created_at']

    def __str__(self) -> str:
        return f"{self.quiz.title}: {self.question_text[:50]}"

    def correct_option_ids(self) -> list:
        return [option.id for option in self.options.all() if option.is_correct]


class QuizOption(models.Model):
    question = models.ForeignKey(QuizQuestion, on_delete=models.CASCADE, related_name='options')
    option_text = models.CharField(max_length=500)
    is_correct = models.BooleanField(default=False)
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ['sort_order']

    def __str__(self) -> str:
        return self.option_text


class QuizAttempt(models.Model):
    quiz = models.ForeignKey(Quiz, on_delete=models.CASCADE, related_name='attempts')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='quiz_attempts')
    attempt_number = models.PositiveIntegerField()
    score = models.PositiveSmallIntegerField()
    points_earned = models.PositiveIntegerField(default=0)
    started_at = models.DateTimeField()
    completed_at = models.DateTimeField()

    class Meta:
        ordering = ['attempt_number']
        constraints = [
            models.UniqueConstraint(fields=['quiz', 'user', 'attempt_number'], name='unique_quiz_attempt_number')
        ]

    def __str__(self) -> str:
        return f"Attempt {self.attempt_number} on {self.quiz.title} by {self.user}"


class QuizResponse(models.Model):
    """
    One graded answer inside an attempt.

    Question and option ids are stored by value so that editing or deleting questions later never
    rewrites graded history.
    """

    attempt = models.ForeignKey(QuizAttempt, on_delete=models.CASCADE, related_name='responses')
    question_ref = models.BigIntegerField()
    question_text = models.TextField(blank=True)
    selected_option_ref = models.BigIntegerField(null=True, blank=True)
    is_correct = models.BooleanField(default=False)
    correct_option_refs = models.JSONField(default=list)
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ['sort_order']
        constraints = [
            models.UniqueConstraint(fields=['attempt', 'question_ref'], name='unique_attempt_question')
        ]

    def __str__(self) -> str:
        return f"Attempt {self.attempt_id} - question {self.question_ref}"
