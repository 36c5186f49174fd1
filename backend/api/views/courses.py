from django.db import models
from django.shortcuts import get_object_or_404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import ensure_profile
from accounts.permissions import IsInstructor
from courses.models import Course, Lesson, LessonProgress
from courses.serializers import (
    CourseSerializer,
    EnrollmentSerializer,
    LessonProgressSerializer,
    LessonSerializer,
)
from courses.services import enroll_user, record_lesson_progress, reorder_lessons
from .access import get_authored_course, get_learner_course


class CourseViewSet(viewsets.ModelViewSet):
    serializer_class = CourseSerializer
    # Browsing and enrolling are open to every signed-in user; everything else is authoring.
    LEARNER_ACTIONS = {'list', 'retrieve', 'enroll'}

    def get_permissions(self):
        if self.action in self.LEARNER_ACTIONS:
            return [IsAuthenticated()]
        return [IsInstructor()]

    def get_queryset(self):
        user = self.request.user
        courses = Course.objects.select_related('responsible')
        if ensure_profile(user).is_superadmin:
            return courses
        if self.action in self.LEARNER_ACTIONS:
            return courses.filter(models.Q(published=True) | models.Q(responsible=user))
        return courses.filter(responsible=user)

    def perform_create(self, serializer):
        serializer.save(responsible=self.request.user)

    @action(detail=True, methods=['post'], url_path='enroll')
    def enroll(self, request, pk=None):
        enrollment = enroll_user(self.get_object(), request.user)
        return Response(EnrollmentSerializer(enrollment).data)


class AuthorLessonListCreate(APIView):
    permission_classes = [IsInstructor]

    def get(self, request, course_id):
        course = get_authored_course(request.user, course_id)
        return Response(LessonSerializer(course.lessons.all(), many=True).data)

    def post(self, request, course_id):
        course = get_authored_course(request.user, course_id)
        serializer = LessonSerializer(data=request.data, context={'course': course})
        serializer.is_valid(raise_exception=True)
        last_order = course.lessons.aggregate(models.Max('sort_order'))['sort_order__max']
        serializer.save(course=course, sort_order=0 if last_order is None else last_order + 1)
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class AuthorLessonDetail(APIView):
    permission_classes = [IsInstructor]

    def patch(self, request, course_id, lesson_id):
        course = get_authored_course(request.user, course_id)
        lesson = get_object_or_404(Lesson, id=lesson_id, course=course)
        serializer = LessonSerializer(lesson, data=request.data, partial=True, context={'course': course})
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    def delete(self, request, course_id, lesson_id):
        course = get_authored_course(request.user, course_id)
        get_object_or_404(Lesson, id=lesson_id, course=course).delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class LessonReorderView(APIView):
    permission_classes = [IsInstructor]

    def post(self, request, course_id):
        course = get_authored_course(request.user, course_id)
        lessons = reorder_lessons(course, request.data.get('lesson_ids'))
        return Response(LessonSerializer(lessons, many=True).data)


class LearnerLessonList(APIView):
    """The course outline with the caller's progress on each lesson."""

    permission_classes = [IsAuthenticated]

    def get(self, request, course_id):
        course = get_learner_course(request.user, course_id)
        lessons = course.lessons.all()
        progress = dict(
            LessonProgress.objects.filter(user=request.user, lesson__course=course).values_list('lesson_id', 'status')
        )
        data = LessonSerializer(lessons, many=True).data
        for item in data:
            item['progress'] = progress.get(item['id'], LessonProgress.Status.NOT_STARTED)
        return Response(data)


class LessonProgressView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, course_id, lesson_id):
        course = get_learner_course(request.user, course_id)
        lesson = get_object_or_404(Lesson, id=lesson_id, course=course)
        progress = record_lesson_progress(request.user, lesson, request.data.get('status'))
        return Response(LessonProgressSerializer(progress).data)
