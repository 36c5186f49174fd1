from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from quizzes.models import Quiz
from quizzes.scoring import attempt_history, submit_attempt
from quizzes.serializers import AttemptSubmitSerializer, LearnerQuizSerializer
from .access import get_learner_course


def _get_learner_quiz(user, course_id, quiz_id) -> Quiz:
    course = get_learner_course(user, course_id)
    return get_object_or_404(Quiz, id=quiz_id, course=course)


class LearnerQuizDetail(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, course_id, quiz_id):
        course = get_learner_course(request.user, course_id)
        quiz = get_object_or_404(Quiz.objects.prefetch_related('questions__options'), id=quiz_id, course=course)
        return Response(LearnerQuizSerializer(quiz).data)


class QuizAttemptSubmit(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, course_id, quiz_id):
        quiz = _get_learner_quiz(request.user, course_id, quiz_id)
        serializer = AttemptSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = submit_attempt(
            quiz,
            request.user,
            serializer.validated_data['answers'],
            started_at=serializer.validated_data.get('started_at'),
        )
        return Response(result, status=status.HTTP_201_CREATED)


class QuizAttemptHistory(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, course_id, quiz_id):
        quiz = _get_learner_quiz(request.user, course_id, quiz_id)
        return Response(attempt_history(quiz, request.user))
