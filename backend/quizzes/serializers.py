from rest_framework import serializers

from .models import Quiz, QuizOption, QuizQuestion


class QuizOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuizOption
        fields = ['id', 'option_text', 'is_correct', 'sort_order']


class QuizQuestionSerializer(serializers.ModelSerializer):
    options = QuizOptionSerializer(many=True, read_only=True)

    class Meta:
        model = QuizQuestion
        fields = ['id', 'quiz', 'question_text', 'sort_order', 'created_at', 'options']


class QuizSerializer(serializers.ModelSerializer):
    question_count = serializers.SerializerMethodField()

    class Meta:
        model = Quiz
        fields = [
            'id',
            'course',
            'title',
            'first_try_points',
            'second_try_points',
            'third_try_points',
            'fourth_plus_points',
            'question_count',
            'created_at',
            'updated_at',
        ]

    def get_question_count(self, obj):
        return obj.questions.count()


class QuizDetailSerializer(QuizSerializer):
    questions = QuizQuestionSerializer(many=True, read_only=True)

    class Meta(QuizSerializer.Meta):
        fields = [*QuizSerializer.Meta.fields, 'questions']


# Learner-facing shapes. These never carry correctness flags: learners only see which options
# were correct in the graded result of a submitted attempt.


class LearnerOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuizOption
        fields = ['id', 'option_text', 'sort_order']


class LearnerQuestionSerializer(serializers.ModelSerializer):
    options = LearnerOptionSerializer(many=True, read_only=True)

    class Meta:
        model = QuizQuestion
        fields = ['id', 'question_text', 'sort_order', 'options']


class LearnerQuizSerializer(serializers.ModelSerializer):
    questions = LearnerQuestionSerializer(many=True, read_only=True)

    class Meta:
        model = Quiz
        fields = [
            'id',
            'course',
            'title',
            'first_try_points',
            'second_try_points',
            'third_try_points',
            'fourth_plus_points',
            'questions',
        ]


class AttemptSubmitSerializer(serializers.Serializer):
    answers = serializers.JSONField()
    started_at = serializers.DateTimeField(required=False, allow_null=True)
