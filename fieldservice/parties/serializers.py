from rest_framework import serializers
from .models import Customer, Engineer


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = [
            'id', 'name', 'address', 'contact_person', 'email', 'phone',
            'account_balance', 'payment_terms', 'created_at', 'updated_at'
        ]
        read_only_fields = ['account_balance', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Customer name is required.')
        return value


class EngineerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Engineer
        fields = ['id', 'name', 'email', 'phone', 'role', 'status', 'created_at']
        read_only_fields = ['created_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Engineer name is required.')
        return value
