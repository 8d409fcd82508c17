from rest_framework import serializers
from .models import InventoryItem


class InventoryItemSerializer(serializers.ModelSerializer):
    stock_status = serializers.CharField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
    is_out_of_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = InventoryItem
        fields = [
            'id', 'sku', 'name', 'category', 'description', 'cost_price', 'sell_price',
            'stock_level', 'location', 'low_stock_threshold',
            'stock_status', 'is_low_stock', 'is_out_of_stock', 'created_at'
        ]
        read_only_fields = ['created_at']

    def validate_sku(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('SKU is required.')
        return value

    def validate(self, attrs):
        for field in ('cost_price', 'sell_price'):
            if attrs.get(field) is not None and attrs[field] < 0:
                raise serializers.ValidationError({field: 'Price cannot be negative.'})
        if attrs.get('low_stock_threshold') is not None and attrs['low_stock_threshold'] < 0:
            raise serializers.ValidationError({'low_stock_threshold': 'Threshold cannot be negative.'})
        return attrs


class PartAllocationSerializer(serializers.Serializer):
    """A part used on a job, seen from the inventory side"""
    id = serializers.IntegerField()
    inventory = serializers.IntegerField(source='inventory_id')
    inventory_name = serializers.CharField(source='inventory.name', default=None)
    inventory_sku = serializers.CharField(source='inventory.sku', default=None)
    description = serializers.CharField()
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    job = serializers.IntegerField(source='job_id')
    job_number = serializers.IntegerField(source='job.job_number')
    job_status = serializers.CharField(source='job.status')
    date_scheduled = serializers.DateField(source='job.date_scheduled', default=None)
    customer_name = serializers.CharField(source='job.customer.name', default=None)
    created_at = serializers.DateTimeField()
