from django.contrib import admin

from workspaces.models import Group, Workspace


@admin.register(Workspace)
class WorkspaceAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "department", "deleted_at")
    list_filter = ("department",)
    search_fields = ("title",)


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "workspace", "deleted_at")
    list_filter = ("workspace",)
    search_fields = ("title",)
