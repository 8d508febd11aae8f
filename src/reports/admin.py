"""Admin configuration for the reports app."""
from django.contrib import admin

from reports.models import PnlSnapshot


@admin.register(PnlSnapshot)
class PnlSnapshotAdmin(admin.ModelAdmin):
    list_display = ("anchor_period", "statement_type", "window", "line", "version", "computed_at")
    list_filter = ("statement_type", "line")
    search_fields = ("anchor_period",)
    readonly_fields = ("payload", "version", "computed_at", "created_at", "updated_at")
    ordering = ["-anchor_period"]
