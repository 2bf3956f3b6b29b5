from django.contrib import admin
from .models import Contact


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ("name", "user", "phone", "email", "is_emergency", "is_verified", "created_at")
    list_filter = ("is_emergency", "is_verified")
    search_fields = ("name", "phone", "email", "user__username", "user__email")
    autocomplete_fields = ("user",)
    readonly_fields = ("is_verified", "created_at")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
