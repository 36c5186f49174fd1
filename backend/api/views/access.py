"""Course lookups shared by the authoring and learner views."""
from rest_framework.exceptions import NotFound, PermissionDenied

from accounts.models import ensure_profile
from courses.models import Course, Enrollment


def authored_courses(user):
    if ensure_profile(user).is_superadmin:
        return Course.objects.all()
    return Course.objects.filter(responsible=user)


def get_authored_course(user, course_id) -> Course:
    course = authored_courses(user).filter(id=course_id).first()
    if course is None:
        raise NotFound('Course not found.')
    return course


def get_learner_course(user, course_id) -> Course:
    course = Course.objects.filter(id=course_id, published=True).first()
    if course is None:
        raise NotFound('Course not found.')
    if not Enrollment.objects.filter(course=course, user=user).exists():
        raise PermissionDenied('You are not enrolled in this course.')
    return course
