# core/admin.py
from django.contrib import admin
from solo.admin import SingletonModelAdmin

from .models import NumberSequence, PortalSettings


@admin.register(PortalSettings)
class PortalSettingsAdmin(SingletonModelAdmin):
    fields = (
        "brand_company",
        "order_code_prefix",
        "activity_log_limit",
        "spare_categories",
    )


@admin.register(NumberSequence)
class NumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("key", "period", "last_value")
    list_filter = ("key",)
