from django.contrib import admin

from production.models import LogisticsShift, ProductionReport


@admin.register(ProductionReport)
class ProductionReportAdmin(admin.ModelAdmin):
    list_display = ("kind", "user", "deal", "date", "cost", "penalty_cost", "lighting_cost")
    list_filter = ("kind",)
    date_hierarchy = "date"


@admin.register(LogisticsShift)
class LogisticsShiftAdmin(admin.ModelAdmin):
    list_display = ("user", "shift_date", "cost", "penalty_cost")
    date_hierarchy = "shift_date"
