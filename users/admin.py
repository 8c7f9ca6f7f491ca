"""
Admin configuration for the users app.

Unregisters the default `User` admin and re-registers it with an inline
profile form so role and clinic membership are editable via the Django
admin.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User

from .models import UserProfile


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    autocomplete_fields = ["clinic"]


class UserAdmin(BaseUserAdmin):
    inlines = [UserProfileInline]
    list_display = ("username", "email", "is_active", "date_joined")


admin.site.unregister(User)
admin.site.register(User, UserAdmin)


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "clinic", "created_at")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email", "full_name", "clinic__clinic_name")
