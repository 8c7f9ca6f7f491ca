from django.contrib import admin

from .models import Clinic, PlatformSetting


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = ("id", "clinic_name", "email", "stripe_status", "created_at")
    list_filter = ("stripe_status",)
    search_fields = ("clinic_name", "email", "contact_name", "stripe_account_id")
    readonly_fields = ("created_at", "updated_at")


@admin.register(PlatformSetting)
class PlatformSettingAdmin(admin.ModelAdmin):
    list_display = ("key", "value", "updated_at")
    search_fields = ("key",)
