from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def display_name(self):
        """Name used to match the user against job assignments"""
        return self.get_full_name().strip() or self.username

    class Meta:
        db_table = 'users'


class CompanySettings(models.Model):
    """Company details printed on documents and used for reminder notifications.

    A single row is kept; use CompanySettings.load() to read it.
    """
    company_name = models.CharField(max_length=200, default='Dairy Equipment Services')
    company_address = models.TextField(blank=True)
    company_phone = models.CharField(max_length=50, blank=True)
    company_email = models.EmailField(blank=True)
    contact_name = models.CharField(max_length=200, blank=True)
    bank_name = models.CharField(max_length=200, blank=True)
    account_name = models.CharField(max_length=200, blank=True)
    iban = models.CharField(max_length=50, blank=True)
    bic = models.CharField(max_length=20, blank=True)
    vat_reg_number = models.CharField(max_length=50, blank=True)
    webhook_url = models.URLField(max_length=500, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.company_name

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj

    class Meta:
        db_table = 'settings'
        verbose_name = 'Company settings'
        verbose_name_plural = 'Company settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('stock_adjust', 'Stock Adjustment'),
        ('job_status', 'Job Status Changed'),
        ('invoice_create', 'Invoice Created'),
        ('invoice_update', 'Invoice Updated'),
        ('invoice_void', 'Invoice Void'),
        ('payment_add', 'Payment Added'),
        ('quote_convert', 'Quote Converted'),
        ('statement_create', 'Statement Created'),
        ('document_generate', 'Document Generated'),
        ('reminder_sent', 'Reminder Sent'),
        ('balance_recalculate', 'Balance Recalculated'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., customer name, invoice number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., invoice number, job number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_6b1f0e_idx'),
            models.Index(fields=['action'], name='audit_logs_action_4c2d9a_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_8e3b71_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__d5a0c2_idx'),
        ]
