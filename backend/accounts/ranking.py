"""
Badges and the leaderboard, both read straight off the points ledger in ``Profile.total_points``.
"""
from .models import BadgeLevel, Profile, ensure_profile

LEADERBOARD_DEFAULT_LIMIT = 25
LEADERBOARD_MAX_LIMIT = 100


def _badge_ref(badge):
    return {'id': badge.id, 'name': badge.name, 'min_points': badge.min_points}


def badge_for(points: int, levels):
    """The highest badge ``points`` qualifies for, or ``None``."""
    reached = [level for level in levels if level.min_points <= points]
    return max(reached, key=lambda level: level.min_points, default=None)


def _progress_percent(points, floor, target):
    span = target - floor
    if span <= 0:
        return 100 if points >= target else 0
    # Rounded half up like attempt scores.
    percent = (200 * (points - floor) + span) // (2 * span)
    return min(100, max(0, percent))


def badge_progress(total_points: int) -> dict:
    """
    Where ``total_points`` sits on the badge ladder.

    The next badge is the one after the current badge in display order (the first badge when none
    has been reached yet). Progress runs from the current badge's threshold to the next one's.
    """
    levels = list(BadgeLevel.objects.all())
    current = badge_for(total_points, levels)
    if current is None:
        upcoming = levels[0] if levels else None
    else:
        index = levels.index(current)
        upcoming = levels[index + 1] if index + 1 < len(levels) else None

    progress = None
    if upcoming is not None:
        floor = current.min_points if current else 0
        progress = {
            'badge': _badge_ref(upcoming),
            'points_needed': max(0, upcoming.min_points - total_points),
            'progress_percent': _progress_percent(total_points, floor, upcoming.min_points),
        }
    return {
        'current_badge': _badge_ref(current) if current else None,
        'progress_to_next_badge': progress,
        'badges': [
            {**_badge_ref(level), 'achieved': total_points >= level.min_points}
            for level in levels
        ],
    }


def _entry(profile, rank, levels):
    badge = badge_for(profile.total_points, levels)
    return {
        'rank': rank,
        'id': profile.user_id,
        'username': profile.username,
        'display_name': profile.display_name,
        'role': profile.role,
        'total_points': profile.total_points,
        'badge': {'name': badge.name, 'min_points': badge.min_points} if badge else None,
    }


def leaderboard(user, limit: int = LEADERBOARD_DEFAULT_LIMIT) -> dict:
    """
    Top ``limit`` profiles by points, ties broken by username.

    ``current_user`` is the caller's own row: taken from the list when they made it, otherwise
    ranked as one more than the number of profiles holding strictly more points.
    """
    levels = list(BadgeLevel.objects.all())
    profiles = Profile.objects.select_related('user').order_by('-total_points', 'user__username')[:limit]
    entries = [_entry(profile, rank, levels) for rank, profile in enumerate(profiles, start=1)]

    current = next((entry for entry in entries if entry['id'] == user.id), None)
    if current is None:
        profile = ensure_profile(user)
        rank = Profile.objects.filter(total_points__gt=profile.total_points).count() + 1
        current = _entry(profile, rank, levels)
    return {'leaderboard': entries, 'current_user': current}
