# catalog/admin.py
from django.contrib import admin

from .models import Item


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "company", "unit", "dealer_rate", "is_active")
    list_filter = ("is_active", "category", "company")
    search_fields = ("name", "category")
