from rest_framework.permissions import BasePermission


def _profile(user):
    return getattr(user, 'profile', None)


class IsInstructor(BasePermission):
    """Course authors: instructors, super admins and Django superusers."""

    message = 'Forbidden'

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if user.is_superuser:
            return True
        profile = _profile(user)
        return bool(profile and profile.can_author)



class IsSuperadmin(BasePermission):
    """Platform-wide settings such as the badge ladder."""

    message = 'Forbidden'

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        if user.is_superuser:
            return True
        profile = _profile(user)
        return bool(profile and profile.is_superadmin)
