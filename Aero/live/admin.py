from django.contrib import admin
from django.utils import timezone
from .models import LiveLocation, LocationShare


class LocationShareInline(admin.TabularInline):
    model = LocationShare
    fields = ("recipient_contact", "share_token", "created_at")
    readonly_fields = ("recipient_contact", "share_token", "created_at")
    extra = 0
    can_delete = False
    show_change_link = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(LiveLocation)
class LiveLocationAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "triggered_by", "is_active", "end_reason", "expires_at", "updated_at")
    list_filter = ("is_active", "triggered_by")
    search_fields = ("user__username", "user__email")
    readonly_fields = ("latitude", "longitude", "accuracy", "end_reason", "created_at", "updated_at")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    inlines = [LocationShareInline]
    actions = ["stop_sharing"]

    @admin.action(description="Stop sharing (all tokens stop working)")
    def stop_sharing(self, request, queryset):
        n = queryset.filter(is_active=True).update(is_active=False, end_reason="ended", updated_at=timezone.now())
        self.message_user(request, f"{n} session(s) stopped.")


@admin.register(LocationShare)
class LocationShareAdmin(admin.ModelAdmin):
    list_display = ("live_location", "sharer_user", "recipient_contact", "created_at")
    search_fields = ("sharer_user__username", "recipient_contact__name")
    readonly_fields = ("live_location", "sharer_user", "recipient_contact", "share_token", "created_at")
    ordering = ("-created_at",)
