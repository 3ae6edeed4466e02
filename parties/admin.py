# parties/admin.py
from django.contrib import admin

from .models import Party


@admin.register(Party)
class PartyAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "phone", "credit_days", "is_active")
    list_filter = ("is_active", "city")
    search_fields = ("name", "city", "phone", "gstin")
