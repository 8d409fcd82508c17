from django.conf import settings
from django.db import models
from decimal import Decimal


class InventoryItem(models.Model):
    """Spare part or consumable held in stock"""
    sku = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=200)
    category = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    sell_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    stock_level = models.IntegerField(default=0)
    location = models.CharField(max_length=200, blank=True)
    low_stock_threshold = models.IntegerField(default=5)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.sku} - {self.name}"

    @property
    def threshold(self):
        if self.low_stock_threshold is None:
            return settings.LOW_STOCK_DEFAULT_THRESHOLD
        return self.low_stock_threshold

    @property
    def is_out_of_stock(self):
        return self.stock_level <= 0

    @property
    def is_low_stock(self):
        return 0 < self.stock_level <= self.threshold

    @property
    def stock_status(self):
        if self.is_out_of_stock:
            return 'out'
        if self.is_low_stock:
            return 'low'
        return 'ok'

    class Meta:
        db_table = 'inventory'
        ordering = ['name']
        indexes = [
            models.Index(fields=['category'], name='inventory_categor_2f81c4_idx'),
        ]
