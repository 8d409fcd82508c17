from decimal import Decimal

from django.db import IntegrityError, models, transaction
from django.db.models import DecimalField, Max, Sum, Value
from django.db.models.functions import Coalesce

from fieldservice.parties.models import Customer
from fieldservice.inventory.models import InventoryItem


class JobQuerySet(models.QuerySet):
    def with_totals(self):
        """Annotate each job with the sum of its item totals"""
        return self.annotate(
            items_total=Coalesce(
                Sum('items__total'),
                Value(Decimal('0.00')),
                output_field=DecimalField(max_digits=12, decimal_places=2),
            )
        )

    def for_engineer(self, engineer_name):
        if engineer_name:
            return self.filter(engineer_name=engineer_name)
        return self


class Job(models.Model):
    """A scheduled or completed service visit"""
    STATUS_SCHEDULED = 'scheduled'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    # Kanban column order
    PIPELINE_ORDER = [STATUS_SCHEDULED, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED]
    ACTIVE_STATUSES = [STATUS_SCHEDULED, STATUS_IN_PROGRESS]

    job_number = models.PositiveIntegerField(unique=True, editable=False)
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='jobs')
    engineer_name = models.CharField(max_length=200, blank=True)
    service_type = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
    date_scheduled = models.DateField(null=True, blank=True)
    date_completed = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = JobQuerySet.as_manager()

    def __str__(self):
        return f"Job #{self.job_number} - {self.customer}"

    @property
    def total(self):
        annotated = getattr(self, 'items_total', None)
        if annotated is not None:
            return annotated
        return self.items.aggregate(total=Sum('total'))['total'] or Decimal('0.00')

    @staticmethod
    def next_job_number():
        current = Job.objects.aggregate(m=Max('job_number'))['m']
        return (current or 0) + 1

    def save(self, *args, **kwargs):
        if self.job_number:
            return super().save(*args, **kwargs)

        # Two concurrent creates can read the same max; retry on the unique constraint
        attempts = 3
        for attempt in range(attempts):
            self.job_number = Job.next_job_number()
            try:
                with transaction.atomic():
                    return super().save(*args, **kwargs)
            except IntegrityError:
                self.job_number = None
                if attempt == attempts - 1:
                    raise

    class Meta:
        db_table = 'jobs'
        ordering = ['-date_scheduled', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='jobs_status_9c1a3e_idx'),
            models.Index(fields=['date_scheduled'], name='jobs_date_sc_4b7e21_idx'),
            models.Index(fields=['engineer_name'], name='jobs_enginee_0d6f5a_idx'),
        ]


class JobItem(models.Model):
    """A part, labour or service line on a job"""
    TYPE_PART = 'part'
    TYPE_LABOR = 'labor'
    TYPE_SERVICE = 'service'
    TYPE_CHOICES = [
        (TYPE_PART, 'Part'),
        (TYPE_LABOR, 'Labour'),
        (TYPE_SERVICE, 'Service'),
    ]

    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='items')
    inventory = models.ForeignKey(InventoryItem, on_delete=models.SET_NULL, null=True, blank=True, related_name='job_items')
    description = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_PART)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.description} x{self.quantity}"

    def save(self, *args, **kwargs):
        self.total = (self.quantity * self.unit_price).quantize(Decimal('0.01'))
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'job_items'
        ordering = ['created_at', 'id']
