from django.contrib import admin

from .models import Complaint, ComplaintComment, ComplaintEvent, Department, UserProfile


class ComplaintEventInline(admin.TabularInline):
    model = ComplaintEvent
    extra = 0
    can_delete = False
    readonly_fields = ("kind", "status", "actor", "assignee", "note", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Complaint)
class ComplaintAdmin(admin.ModelAdmin):
    list_display = (
        "tracking_code",
        "title",
        "category",
        "department",
        "status",
        "priority",
        "user",
        "assigned_to",
        "created_at",
    )
    list_filter = ("status", "category", "priority", "department", "created_at")
    search_fields = ("tracking_code", "title", "user__username", "contact_email", "location")
    readonly_fields = (
        "tracking_code",
        "status",
        "assigned_to",
        "resolved_at",
        "escalation_count",
        "escalated_at",
        "version",
        "created_at",
        "updated_at",
    )
    inlines = [ComplaintEventInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ComplaintEvent)
class ComplaintEventAdmin(admin.ModelAdmin):
    list_display = ("id", "complaint", "kind", "status", "actor", "created_at")
    list_filter = ("kind", "status")
    search_fields = ("complaint__tracking_code", "note")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "email")
    prepopulated_fields = {"slug": ("name",)}
    search_fields = ("name",)


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "department")
    list_filter = ("role", "department")
    search_fields = ("user__username", "user__email")


@admin.register(ComplaintComment)
class ComplaintCommentAdmin(admin.ModelAdmin):
    list_display = ("id", "complaint", "author", "created_at")
    search_fields = ("complaint__tracking_code", "author__username", "comment")
    readonly_fields = ("created_at",)
