from django.contrib import admin

from .models import Quiz, QuizQuestion, QuizOption, QuizAttempt, QuizResponse


class QuizQuestionInline(admin.TabularInline):
    model = QuizQuestion
    extra = 0


@admin.register(Quiz)
class QuizAdmin(admin.ModelAdmin):
    list_display = (
        'title',
        'course',
        'first_try_points',
        'second_try_points',
        'third_try_points',
        'fourth_plus_points',
    )
    inlines = [QuizQuestionInline]


class QuizOptionInline(admin.TabularInline):
    model = QuizOption
    extra = 0


@admin.register(QuizQuestion)
class QuizQuestionAdmin(admin.ModelAdmin):
    list_display = ('quiz', 'question_text', 'sort_order')
    inlines = [QuizOptionInline]


class QuizResponseInline(admin.TabularInline):
    model = QuizResponse
    extra = 0
    can_delete = False
    readonly_fields = ('question_ref', 'question_text', 'selected_option_ref', 'is_correct', 'correct_option_refs')


@admin.register(QuizAttempt)
class QuizAttemptAdmin(admin.ModelAdmin):
    list_display = ('quiz', 'user', 'attempt_number', 'score', 'points_earned', 'completed_at')
    readonly_fields = ('quiz', 'user', 'attempt_number', 'score', 'points_earned', 'started_at', 'completed_at')
    inlines = [QuizResponseInline]

    def has_add_permission(self, request):
        return False
