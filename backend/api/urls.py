from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AttemptExportView,
    AuthorLessonDetail,
    AuthorLessonListCreate,
    AuthorQuizDetail,
    AuthorQuizListCreate,
    BadgeLevelViewSet,
    CourseViewSet,
    CSRFTokenView,
    LeaderboardView,
    LearnerLessonList,
    LearnerQuizDetail,
    LessonProgressView,
    LessonReorderView,
    LoginView,
    LogoutView,
    MeView,
    MyPointsView,
    QuestionCreate,
    QuestionDetail,
    QuizAttemptHistory,
    QuizAttemptSubmit,
)

router = DefaultRouter()
router.register('courses', CourseViewSet, basename='course')
router.register('admin/badge-levels', BadgeLevelViewSet, basename='badge-level')

urlpatterns = [
    path('auth/csrf/', CSRFTokenView.as_view(), name='api-csrf'),
    path('auth/login/', LoginView.as_view(), name='api-login'),
    path('auth/logout/', LogoutView.as_view(), name='api-logout'),
    path('me/', MeView.as_view(), name='me'),
    path('me/points/', MyPointsView.as_view(), name='me-points'),
    path('leaderboard/', LeaderboardView.as_view(), name='leaderboard'),
    path('', include(router.urls)),
    path('admin/courses/<int:course_id>/lessons/', AuthorLessonListCreate.as_view(), name='author-lessons'),
    path(
        'admin/courses/<int:course_id>/lessons/reorder/',
        LessonReorderView.as_view(),
        name='author-lessons-reorder',
    ),
    path(
        'admin/courses/<int:course_id>/lessons/<int:lesson_id>/',
        AuthorLessonDetail.as_view(),
        name='author-lesson-detail',
    ),
    path('admin/courses/<int:course_id>/quizzes/', AuthorQuizListCreate.as_view(), name='author-quizzes'),
    path(
        'admin/courses/<int:course_id>/quizzes/<int:quiz_id>/',
        AuthorQuizDetail.as_view(),
        name='author-quiz-detail',
    ),
    path(
        'admin/courses/<int:course_id>/quizzes/<int:quiz_id>/questions/',
        QuestionCreate.as_view(),
        name='author-questions',
    ),
    path(
        'admin/courses/<int:course_id>/quizzes/<int:quiz_id>/questions/<int:question_id>/',
        QuestionDetail.as_view(),
        name='author-question-detail',
    ),
    path(
        'admin/courses/<int:course_id>/quizzes/<int:quiz_id>/attempts/export/',
        AttemptExportView.as_view(),
        name='author-attempts-export',
    ),
    path('courses/<int:course_id>/lessons/', LearnerLessonList.as_view(), name='course-lessons'),
    path(
        'courses/<int:course_id>/lessons/<int:lesson_id>/progress/',
        LessonProgressView.as_view(),
        name='lesson-progress',
    ),
    path('courses/<int:course_id>/quizzes/<int:quiz_id>/', LearnerQuizDetail.as_view(), name='quiz-detail'),
    path(
        'courses/<int:course_id>/quizzes/<int:quiz_id>/attempt/',
        QuizAttemptSubmit.as_view(),
        name='quiz-attempt-submit',
    ),
    path(
        'courses/<int:course_id>/quizzes/<int:quiz_id>/attempts/',
        QuizAttemptHistory.as_view(),
        name='quiz-attempt-history',
    ),
]
