from django.contrib import admin
from .models import BadgeLevel, Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'role', 'total_points')
    search_fields = ('user__username', 'user__email')
    list_filter = ('role',)
    readonly_fields = ('total_points',)


@admin.register(BadgeLevel)
class BadgeLevelAdmin(admin.ModelAdmin):
    list_display = ('name', 'min_points', 'sort_order')
    ordering = ('sort_order', 'min_points')
