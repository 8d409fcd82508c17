from django.contrib import admin
from .models import Job, JobItem


class JobItemInline(admin.TabularInline):
    model = JobItem
    extra = 0
    readonly_fields = ['total']


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ['job_number', 'customer', 'engineer_name', 'service_type', 'status', 'date_scheduled', 'date_completed']
    list_filter = ['status', 'engineer_name', 'date_scheduled']
    search_fields = ['customer__name', 'service_type', 'engineer_name']
    ordering = ['-date_scheduled', '-created_at']
    inlines = [JobItemInline]
    readonly_fields = ['job_number', 'date_completed', 'created_at']
