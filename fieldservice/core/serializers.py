from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, CompanySettings, AuditLog
from .utils import ROLE_GROUPS, assign_role


class UserSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    groups = serializers.SlugRelatedField(slug_field='name', many=True, read_only=True)
    role = serializers.ChoiceField(choices=list(ROLE_GROUPS), write_only=True, required=False)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'display_name', 'phone', 'is_active', 'is_staff', 'is_superuser', 'groups', 'role', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def update(self, instance, validated_data):
        role = validated_data.pop('role', None)
        instance = super().update(instance, validated_data)
        if role:
            assign_role(instance, role)
        return instance


class UserCreateSerializer(serializers.ModelSerializer):
    """Self-registration: the account starts inactive and without a role"""
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone']

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        role = validated_data.pop('role', None)
        validated_data.setdefault('is_active', False)
        user = User.objects.create(**validated_data)
        user.set_password(password)
        user.save()
        if role:
            assign_role(user, role)
        return user


class AdminUserCreateSerializer(UserCreateSerializer):
    """Users added by an admin are active and may be given a role"""
    role = serializers.ChoiceField(choices=list(ROLE_GROUPS), required=False)

    class Meta(UserCreateSerializer.Meta):
        fields = UserCreateSerializer.Meta.fields + ['role']

    def create(self, validated_data):
        validated_data.setdefault('is_active', True)
        return super().create(validated_data)


class CompanySettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompanySettings
        fields = [
            'company_name', 'company_address', 'company_phone', 'company_email', 'contact_name',
            'bank_name', 'account_name', 'iban', 'bic', 'vat_reg_number', 'webhook_url', 'updated_at'
        ]
        read_only_fields = ['updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
