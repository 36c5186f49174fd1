import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import models

logger = logging.getLogger(__name__)


class Profile(models.Model):
    class Role(models.TextChoices):
        SUPERADMIN = 'superadmin', 'Super admin'
        INSTRUCTOR = 'instructor', 'Instructor'
        LEARNER = 'learner', 'Learner'

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.LEARNER)
    total_points = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.user.get_username()

    @property
    def username(self) -> str:
        return self.user.get_username()

    @property
    def display_name(self) -> str:
        first_name = self.user.first_name or ''
        last_name = self.user.last_name or ''
        name = f"{first_name} {last_name}".strip()
        return name or self.username

    @property
    def is_superadmin(self) -> bool:
        return self.role == self.Role.SUPERADMIN or self.user.is_superuser

    @property
    def can_author(self) -> bool:
        return self.is_superadmin or self.role == self.Role.INSTRUCTOR


class BadgeLevel(models.Model):
    """A named tier a learner reaches once their points total hits ``min_points``."""

    name = models.CharField(max_length=100)
    min_points = models.PositiveIntegerField()
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['sort_order', 'min_points', 'id']

    def __str__(self) -> str:
        return f"{self.name} ({self.min_points}+)"


User = get_user_model()


def ensure_profile(user: User) -> 'Profile':
    profile, _ = Profile.objects.get_or_create(user=user)
    return profile


def credit_points(user: User, amount: int) -> None:
    """
    Add ``amount`` to the learner's points ledger.

    The increment is a single ``UPDATE ... SET total_points = total_points + n`` so it composes with
    the caller's transaction; the ledger total is never read back and recomputed here.
    """
    if amount <= 0:
        return
    updated = Profile.objects.filter(user=user).update(total_points=models.F('total_points') + amount)
    if not updated:
        Profile.objects.create(user=user, total_points=amount)
    logger.info('Credited %s points to %s', amount, user.get_username())
