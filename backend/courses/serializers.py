from rest_framework import serializers

from .models import Course, Enrollment, Lesson, LessonProgress


class CourseSerializer(serializers.ModelSerializer):
    responsible_username = serializers.CharField(source='responsible.username', read_only=True)

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'responsible', 'responsible_username', 'published', 'created_at', 'updated_at']
        read_only_fields = ['responsible', 'created_at', 'updated_at']

    def validate_title(self, value):
        title = value.strip()
        if not title:
            raise serializers.ValidationError('Title is required.')
        return title


class LessonSerializer(serializers.ModelSerializer):
    class Meta:
        model = Lesson
        fields = ['id', 'course', 'title', 'lesson_type', 'description', 'sort_order', 'quiz', 'created_at']
        read_only_fields = ['course', 'sort_order', 'created_at']

    def validate(self, attrs):
        course = self.context.get('course')
        lesson_type = attrs.get('lesson_type', getattr(self.instance, 'lesson_type', None))
        quiz = attrs.get('quiz', getattr(self.instance, 'quiz', None))
        if lesson_type == Lesson.LessonType.QUIZ and quiz is None:
            raise serializers.ValidationError({'quiz': ['Quiz lessons must reference a quiz.']})
        if lesson_type != Lesson.LessonType.QUIZ and quiz is not None:
            raise serializers.ValidationError({'quiz': ['Only quiz lessons can reference a quiz.']})
        if quiz is not None and course is not None and quiz.course_id != course.id:
            raise serializers.ValidationError({'quiz': ['Quiz must belong to this course.']})
        return attrs


class EnrollmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Enrollment
        fields = ['id', 'course', 'user', 'status', 'enrolled_at', 'started_at', 'completed_at']
        read_only_fields = fields


class LessonProgressSerializer(serializers.ModelSerializer):
    class Meta:
        model = LessonProgress
        fields = ['id', 'lesson', 'status', 'started_at', 'completed_at']
        read_only_fields = fields
