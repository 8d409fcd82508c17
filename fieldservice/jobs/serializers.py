from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from fieldservice.parties.serializers import CustomerSerializer
from .models import Job, JobItem


class JobItemSerializer(serializers.ModelSerializer):
    inventory_name = serializers.CharField(source='inventory.name', read_only=True, default=None)
    inventory_sku = serializers.CharField(source='inventory.sku', read_only=True, default=None)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)

    class Meta:
        model = JobItem
        fields = [
            'id', 'job', 'inventory', 'inventory_name', 'inventory_sku', 'description',
            'quantity', 'unit_price', 'total', 'type', 'created_at'
        ]
        read_only_fields = ['job', 'total', 'created_at']

    def validate(self, attrs):
        # Picking a part fills in its name and sell price unless given
        inventory = attrs.get('inventory')
        if inventory is not None:
            if not attrs.get('description'):
                attrs['description'] = inventory.name
            if attrs.get('unit_price') is None:
                attrs['unit_price'] = inventory.sell_price

        if self.instance is None:
            if not attrs.get('description'):
                raise serializers.ValidationError({'description': 'Description is required.'})
            if attrs.get('unit_price') is None:
                attrs['unit_price'] = Decimal('0.00')

        quantity = attrs.get('quantity')
        if quantity is not None and quantity <= 0:
            raise serializers.ValidationError({'quantity': 'Quantity must be greater than zero.'})
        unit_price = attrs.get('unit_price')
        if unit_price is not None and unit_price < 0:
            raise serializers.ValidationError({'unit_price': 'Unit price cannot be negative.'})
        return attrs


class JobListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Job
        fields = [
            'id', 'job_number', 'customer', 'customer_name', 'engineer_name', 'service_type',
            'status', 'status_display', 'date_scheduled', 'date_completed', 'notes', 'total', 'created_at'
        ]


class JobSerializer(serializers.ModelSerializer):
    customer_detail = CustomerSerializer(source='customer', read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    items = JobItemSerializer(many=True, required=False)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Job
        fields = [
            'id', 'job_number', 'customer', 'customer_name', 'customer_detail', 'engineer_name',
            'service_type', 'status', 'status_display', 'date_scheduled', 'date_completed', 'notes',
            'items', 'total', 'created_at'
        ]
        read_only_fields = ['job_number', 'date_completed', 'created_at']

    def validate_status(self, value):
        # Existing jobs change status through the status transition
        if self.instance is not None and value != self.instance.status:
            raise serializers.ValidationError('Use the status endpoint to move a job between columns.')
        return value

    def create(self, validated_data):
        items_data = validated_data.pop('items', [])
        with transaction.atomic():
            job = Job.objects.create(**validated_data)
            for item_data in items_data:
                JobItem.objects.create(job=job, **item_data)
        return job

    def update(self, instance, validated_data):
        # Items are managed through the job items endpoints
        validated_data.pop('items', None)
        return super().update(instance, validated_data)


class JobStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Job.STATUS_CHOICES)
