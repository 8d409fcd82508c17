# Generated manually

from decimal import Decimal
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('parties', '0001_initial'),
        ('inventory', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Job',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('job_number', models.PositiveIntegerField(editable=False, unique=True)),
                ('engineer_name', models.CharField(blank=True, max_length=200)),
                ('service_type', models.CharField(blank=True, max_length=200)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='scheduled', max_length=20)),
                ('date_scheduled', models.DateField(blank=True, null=True)),
                ('date_completed', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='jobs', to='parties.customer')),
            ],
            options={
                'db_table': 'jobs',
                'ordering': ['-date_scheduled', '-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='jobs_status_9c1a3e_idx'),
                    models.Index(fields=['date_scheduled'], name='jobs_date_sc_4b7e21_idx'),
                    models.Index(fields=['engineer_name'], name='jobs_enginee_0d6f5a_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='JobItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('description', models.CharField(max_length=255)),
                ('quantity', models.DecimalField(decimal_places=2, default=Decimal('1.00'), max_digits=10)),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('type', models.CharField(choices=[('part', 'Part'), ('labor', 'Labour'), ('service', 'Service')], default='part', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('inventory', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='job_items', to='inventory.inventoryitem')),
                ('job', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='jobs.job')),
            ],
            options={
                'db_table': 'job_items',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
