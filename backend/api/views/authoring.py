import csv

import openpyxl
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsInstructor
from quizzes import authoring
from quizzes.models import Quiz, QuizAttempt, QuizQuestion
from quizzes.serializers import QuizDetailSerializer, QuizQuestionSerializer, QuizSerializer
from .access import get_authored_course


def _get_authored_quiz(user, course_id, quiz_id) -> Quiz:
    course = get_authored_course(user, course_id)
    return get_object_or_404(Quiz.objects.prefetch_related('questions__options'), id=quiz_id, course=course)


class AuthorQuizListCreate(APIView):
    permission_classes = [IsInstructor]

    def get(self, request, course_id):
        course = get_authored_course(request.user, course_id)
        return Response(QuizSerializer(course.quizzes.all(), many=True).data)

    def post(self, request, course_id):
        course = get_authored_course(request.user, course_id)
        points = {field: request.data.get(field) for field in Quiz.POINT_FIELDS}
        quiz = authoring.create_quiz(course, request.data.get('title'), points)
        return Response(QuizDetailSerializer(quiz).data, status=status.HTTP_201_CREATED)


class AuthorQuizDetail(APIView):
    permission_classes = [IsInstructor]

    def get(self, request, course_id, quiz_id):
        quiz = _get_authored_quiz(request.user, course_id, quiz_id)
        return Response(QuizDetailSerializer(quiz).data)

    def patch(self, request, course_id, quiz_id):
        quiz = _get_authored_quiz(request.user, course_id, quiz_id)
        quiz = authoring.update_quiz(quiz, request.data)
        return Response(QuizDetailSerializer(quiz).data)

    def delete(self, request, course_id, quiz_id):
        quiz = _get_authored_quiz(request.user, course_id, quiz_id)
        authoring.delete_quiz(quiz)
        return Response(status=status.HTTP_204_NO_CONTENT)


class QuestionCreate(APIView):
    permission_classes = [IsInstructor]

    def post(self, request, course_id, quiz_id):
        quiz = _get_authored_quiz(request.user, course_id, quiz_id)
        question = authoring.add_question(quiz, request.data.get('question_text'), request.data.get('options'))
        return Response(QuizQuestionSerializer(question).data, status=status.HTTP_201_CREATED)


class QuestionDetail(APIView):
    permission_classes = [IsInstructor]

    def _get_question(self, request, course_id, quiz_id, question_id):
        quiz = _get_authored_quiz(request.user, course_id, quiz_id)
        return get_object_or_404(QuizQuestion, id=question_id, quiz=quiz)

    def patch(self, request, course_id, quiz_id, question_id):
        question = self._get_question(request, course_id, quiz_id, question_id)
        question = authoring.update_question(
            question,
            question_text=request.data.get('question_text'),
            options=request.data.get('options'),
        )
        return Response(QuizQuestionSerializer(question).data)

    def delete(self, request, course_id, quiz_id, question_id):
        question = self._get_question(request, course_id, quiz_id, question_id)
        authoring.delete_question(question)
        return Response(status=status.HTTP_204_NO_CONTENT)


class AttemptExportView(APIView):
    """Download every attempt of a quiz as CSV (default) or ``?file_type=xlsx``."""

    permission_classes = [IsInstructor]
    HEADERS = ['Learner', 'Attempt', 'Score', 'Points Earned', 'Started At', 'Completed At']

    def get(self, request, course_id, quiz_id):
        quiz = _get_authored_quiz(request.user, course_id, quiz_id)
        file_type = request.query_params.get('file_type', 'csv')
        if file_type not in ('csv', 'xlsx'):
            raise ValidationError({'file_type': ['Choose csv or xlsx.']})

        attempts = (
            QuizAttempt.objects.filter(quiz=quiz)
            .select_related('user')
            .order_by('user__username', 'attempt_number')
        )
        rows = [
            [
                attempt.user.get_username(),
                attempt.attempt_number,
                attempt.score,
                attempt.points_earned,
                attempt.started_at.isoformat(),
                attempt.completed_at.isoformat(),
            ]
            for attempt in attempts
        ]

        if file_type == 'xlsx':
            wb = openpyxl.Workbook()
            ws = wb.active
            ws.title = 'Attempts'
            ws.append(self.HEADERS)
            for row in rows:
                ws.append(row)
            response = HttpResponse(content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
            response['Content-Disposition'] = f'attachment; filename="quiz_{quiz.id}_attempts.xlsx"'
            wb.save(response)
            return response

        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="quiz_{quiz.id}_attempts.csv"'
        writer = csv.writer(response)
        writer.writerow(self.HEADERS)
        writer.writerows(rows)
        return response
