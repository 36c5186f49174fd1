from .auth import CSRFTokenView, LoginView, LogoutView, MeView, MyPointsView
from .courses import (
    AuthorLessonDetail,
    AuthorLessonListCreate,
    CourseViewSet,
    LearnerLessonList,
    LessonProgressView,
    LessonReorderView,
)
from .authoring import (
    AttemptExportView,
    AuthorQuizDetail,
    AuthorQuizListCreate,
    QuestionCreate,
    QuestionDetail,
)
from .learner import LearnerQuizDetail, QuizAttemptHistory, QuizAttemptSubmit
from .points import BadgeLevelViewSet, LeaderboardView
