from django.test import TestCase
from django.contrib.auth import get_user_model
from .models import BadgeLevel, Profile, credit_points, ensure_profile
from .ranking import badge_for, badge_progress, leaderboard

User = get_user_model()

class ProfileModelTests(TestCase):
    def test_create_profile(self):
        user = User.objects.create_user(username='testuser', password='password')
        profile = Profile.objects.create(user=user)
        self.assertEqual(profile.user, user)
        self.assertEqual(str(profile), 'testuser')
        self.assertEqual(profile.username, 'testuser')
        self.assertEqual(profile.display_name, 'testuser')
        self.assertEqual(profile.role, Profile.Role.LEARNER)
        self.assertEqual(profile.total_points, 0)

    def test_display_name_with_names(self):
        user = User.objects.create_user(username='nameduser', password='password', first_name='John', last_name='Doe')
        profile = Profile.objects.create(user=user)
        self.assertEqual(profile.display_name, 'John Doe')

    def test_ensure_profile_creates_new(self):
        user = User.objects.create_user(username='newuser', password='password')
        profile = ensure_profile(user)
        self.assertTrue(Profile.objects.filter(user=user).exists())
        self.assertEqual(profile.user, user)

    def test_ensure_profile_returns_existing(self):
        user = User.objects.create_user(username='existinguser', password='password')
        existing_profile = Profile.objects.create(user=user, role=Profile.Role.INSTRUCTOR)
        profile = ensure_profile(user)
        self.assertEqual(profile, existing_profile)
        self.assertEqual(Profile.objects.filter(user=user).count(), 1)

    def test_authoring_roles(self):
        learner = Profile.objects.create(user=User.objects.create_user(username='learner'))
        instructor = Profile.objects.create(
            user=User.objects.create_user(username='instructor'), role=Profile.Role.INSTRUCTOR
        )
        admin = Profile.objects.create(user=User.objects.create_user(username='boss'), role=Profile.Role.SUPERADMIN)
        superuser = Profile.objects.create(user=User.objects.create_superuser(username='root', password='pw'))
        self.assertFalse(learner.can_author)
        self.assertTrue(instructor.can_author)
        self.assertFalse(instructor.is_superadmin)
        self.assertTrue(admin.is_superadmin)
        self.assertTrue(superuser.is_superadmin)


class CreditPointsTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='learner', password='password')

    def test_credit_adds_to_existing_total(self):
        Profile.objects.create(user=self.user, total_points=5)
        credit_points(self.user, 7)
        self.assertEqual(Profile.objects.get(user=self.user).total_points, 12)

    def test_credit_creates_missing_profile(self):
        credit_points(self.user, 10)
        self.assertEqual(Profile.objects.get(user=self.user).total_points, 10)

    def test_zero_credit_is_a_no_op(self):
        credit_points(self.user, 0)
        self.assertFalse(Profile.objects.filter(user=self.user).exists())


class BadgeProgressTests(TestCase):
    def setUp(self):
        self.bronze = BadgeLevel.objects.create(name='Bronze', min_points=10, sort_order=0)
        self.silver = BadgeLevel.objects.create(name='Silver', min_points=30, sort_order=1)
        self.gold = BadgeLevel.objects.create(name='Gold', min_points=60, sort_order=2)

    def test_badge_for_picks_highest_reached(self):
        levels = list(BadgeLevel.objects.all())
        self.assertIsNone(badge_for(9, levels))
        self.assertEqual(badge_for(10, levels), self.bronze)
        self.assertEqual(badge_for(59, levels), self.silver)
        self.assertEqual(badge_for(500, levels), self.gold)

    def test_before_the_first_badge(self):
        progress = badge_progress(4)
        self.assertIsNone(progress['current_badge'])
        self.assertEqual(
            progress['progress_to_next_badge'],
            {
                'badge': {'id': self.bronze.id, 'name': 'Bronze', 'min_points': 10},
                'points_needed': 6,
                'progress_percent': 40,
            },
        )
        self.assertEqual([badge['achieved'] for badge in progress['badges']], [False, False, False])

    def test_progress_between_badges_rounds_half_up(self):
        # 25 points: 15 of the 20 between Bronze and Silver.
        progress = badge_progress(25)
        self.assertEqual(progress['current_badge'], {'id': self.bronze.id, 'name': 'Bronze', 'min_points': 10})
        self.assertEqual(progress['progress_to_next_badge']['badge']['name'], 'Silver')
        self.assertEqual(progress['progress_to_next_badge']['points_needed'], 5)
        self.assertEqual(progress['progress_to_next_badge']['progress_percent'], 75)
        self.assertEqual(badge_progress(41)['progress_to_next_badge']['progress_percent'], 37)
        self.assertEqual([badge['achieved'] for badge in progress['badges']], [True, False, False])

    def test_top_badge_has_nothing_next(self):
        progress = badge_progress(60)
        self.assertEqual(progress['current_badge']['name'], 'Gold')
        self.assertIsNone(progress['progress_to_next_badge'])

    def test_no_badges_configured(self):
        BadgeLevel.objects.all().delete()
        self.assertEqual(
            badge_progress(100),
            {'current_badge': None, 'progress_to_next_badge': None, 'badges': []},
        )


class LeaderboardTests(TestCase):
    def setUp(self):
        BadgeLevel.objects.create(name='Bronze', min_points=10, sort_order=0)
        self.users = {}
        for username, points in [('carol', 40), ('alice', 40), ('bob', 5), ('dave', 0)]:
            user = User.objects.create_user(username=username, password='password')
            Profile.objects.create(user=user, total_points=points)
            self.users[username] = user

    def test_ranked_by_points_then_username(self):
        board = leaderboard(self.users['bob'])
        self.assertEqual([entry['username'] for entry in board['leaderboard']], ['alice', 'carol', 'bob', 'dave'])
        self.assertEqual([entry['rank'] for entry in board['leaderboard']], [1, 2, 3, 4])
        self.assertEqual(board['leaderboard'][0]['badge'], {'name': 'Bronze', 'min_points': 10})
        self.assertIsNone(board['leaderboard'][2]['badge'])
        self.assertEqual(board['current_user']['rank'], 3)

    def test_current_user_outside_the_limit(self):
        board = leaderboard(self.users['dave'], limit=2)
        self.assertEqual(len(board['leaderboard']), 2)
        self.assertEqual(board['current_user']['username'], 'dave')
        self.assertEqual(board['current_user']['rank'], 4)

    def test_user_without_profile_is_ranked_last(self):
        newcomer = User.objects.create_user(username='newcomer', password='password')
        board = leaderboard(newcomer, limit=1)
        self.assertEqual(board['current_user']['total_points'], 0)
        self.assertEqual(board['current_user']['rank'], 4)
