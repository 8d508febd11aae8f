from django.contrib import admin

from commercial.models import (
    AdExpense,
    AdSource,
    ManagerPlan,
    ManagerReport,
    SalaryCorrection,
    SalaryPay,
)


@admin.register(ManagerReport)
class ManagerReportAdmin(admin.ModelAdmin):
    list_display = ("user", "date", "calls", "makets", "makets_day_to_day", "is_intern", "shift_cost")
    list_filter = ("period", "is_intern")
    search_fields = ("user__email", "user__first_name", "user__last_name")


@admin.register(ManagerPlan)
class ManagerPlanAdmin(admin.ModelAdmin):
    list_display = ("user", "period", "plan", "deleted_at")
    list_filter = ("period",)


@admin.register(SalaryPay)
class SalaryPayAdmin(admin.ModelAdmin):
    list_display = ("user", "period", "price", "date", "status")
    list_filter = ("period", "status")


@admin.register(SalaryCorrection)
class SalaryCorrectionAdmin(admin.ModelAdmin):
    list_display = ("user", "period", "type", "price", "description")
    list_filter = ("period", "type")


@admin.register(AdSource)
class AdSourceAdmin(admin.ModelAdmin):
    list_display = ("title", "workspace")


@admin.register(AdExpense)
class AdExpenseAdmin(admin.ModelAdmin):
    list_display = ("ad_source", "date", "price", "workspace", "group")
    list_filter = ("workspace", "ad_source")
