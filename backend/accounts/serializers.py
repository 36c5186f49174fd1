from rest_framework import serializers

from .models import BadgeLevel, Profile


class ProfileSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Profile
        fields = ['id', 'username', 'display_name', 'role', 'total_points']
        read_only_fields = fields


class BadgeLevelSerializer(serializers.ModelSerializer):
    name = serializers.CharField(max_length=100, error_messages={'blank': 'Badge name is required'})
    min_points = serializers.IntegerField(
        min_value=0, error_messages={'min_value': 'Minimum points must be a non-negative number'}
    )

    class Meta:
        model = BadgeLevel
        fields = ['id', 'name', 'min_points', 'sort_order', 'created_at']
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {'sort_order': {'required': True}}
