# orders/admin.py
from django.contrib import admin

from .models import DispatchEvent, Order, OrderLine, OrderLog


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    fields = ("item", "qty", "dispatched_qty", "dealer_rate_at_order", "line_total", "line_remarks")
    readonly_fields = ("line_total",)
    autocomplete_fields = ("item",)


class OrderLogInline(admin.TabularInline):
    model = OrderLog
    extra = 0
    fields = ("created_at", "message", "actor")
    readonly_fields = ("created_at", "message", "actor")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_code",
        "party",
        "order_date",
        "expected_dispatch_date",
        "status",
        "total_qty",
        "total_value",
    )
    list_filter = ("status", "order_date")
    search_fields = ("order_code", "party__name")
    date_hierarchy = "order_date"
    readonly_fields = ("order_code", "total_qty", "total_value", "created_by", "created_at", "updated_at")
    autocomplete_fields = ("party",)
    inlines = [OrderLineInline, OrderLogInline]


@admin.register(DispatchEvent)
class DispatchEventAdmin(admin.ModelAdmin):
    list_display = ("order", "order_line", "dispatched_qty", "dispatched_at", "submission_id")
    list_filter = ("dispatched_at",)
    search_fields = ("order__order_code", "order_line__item__name")
    raw_id_fields = ("order", "order_line")


@admin.register(OrderLog)
class OrderLogAdmin(admin.ModelAdmin):
    list_display = ("order", "created_at", "message", "actor")
    search_fields = ("order__order_code", "message")
    raw_id_fields = ("order",)
