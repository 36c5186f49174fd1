from rest_framework import viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import BadgeLevel
from accounts.permissions import IsSuperadmin
from accounts.ranking import LEADERBOARD_DEFAULT_LIMIT, LEADERBOARD_MAX_LIMIT, leaderboard
from accounts.serializers import BadgeLevelSerializer


class BadgeLevelViewSet(viewsets.ModelViewSet):
    queryset = BadgeLevel.objects.all()
    serializer_class = BadgeLevelSerializer
    permission_classes = [IsSuperadmin]
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']


class LeaderboardView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        limit = request.query_params.get('limit')
        if limit is None:
            limit = LEADERBOARD_DEFAULT_LIMIT
        else:
            try:
                limit = int(limit)
            except ValueError as exc:
                raise ValidationError({'limit': ['Limit must be a whole number.']}) from exc
        limit = min(max(limit, 1), LEADERBOARD_MAX_LIMIT)
        return Response(leaderboard(request.user, limit))
