from django.contrib import admin

from deals.models import AddOn, Client, Deal, DealParticipant, Delivery, Payment


class DealParticipantInline(admin.TabularInline):
    model = DealParticipant
    extra = 0


class AddOnInline(admin.TabularInline):
    model = AddOn
    extra = 0


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "price", "sale_date", "status", "reservation", "workspace", "group")
    list_filter = ("status", "reservation", "maket_type", "workspace", "group")
    search_fields = ("title", "client__full_name")
    date_hierarchy = "sale_date"
    inlines = [DealParticipantInline, AddOnInline, PaymentInline]


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ("id", "full_name", "first_contact", "workspace")
    search_fields = ("full_name",)


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ("id", "deal", "status", "type", "date", "delivered_date", "price")
    list_filter = ("status", "type")
