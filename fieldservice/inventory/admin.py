from django.contrib import admin
from .models import InventoryItem


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ['sku', 'name', 'category', 'stock_level', 'low_stock_threshold', 'sell_price', 'location']
    list_filter = ['category', 'location']
    search_fields = ['sku', 'name', 'category', 'description']
    ordering = ['name']
