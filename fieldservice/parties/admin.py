from django.contrib import admin
from .models import Customer, Engineer


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'contact_person', 'phone', 'email', 'account_balance', 'payment_terms', 'created_at']
    list_filter = ['payment_terms', 'created_at']
    search_fields = ['name', 'contact_person', 'phone', 'email', 'address']
    readonly_fields = ['account_balance']
    ordering = ['name']


@admin.register(Engineer)
class EngineerAdmin(admin.ModelAdmin):
    list_display = ['name', 'role', 'email', 'phone', 'status', 'created_at']
    list_filter = ['status', 'role']
    search_fields = ['name', 'email']
    ordering = ['name']
