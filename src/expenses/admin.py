"""Admin registration for expense models."""
from django.contrib import admin

from expenses.models import ExpenseCategory, OperationPosition, Project


@admin.register(ExpenseCategory)
class ExpenseCategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "parent", "type", "is_active")
    list_filter = ("type", "is_active")
    search_fields = ("name", "code")


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ("title", "code")


@admin.register(OperationPosition)
class OperationPositionAdmin(admin.ModelAdmin):
    list_display = ("operation_date", "category", "project", "amount", "counterparty")
    list_filter = ("category", "project")
    search_fields = ("description", "counterparty")
    date_hierarchy = "operation_date"
