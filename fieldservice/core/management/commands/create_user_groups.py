from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Admin, Office, Engineer'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': 'Admin',
                'description': 'Office staff and owners - full access including billing, reports and settings',
                'permissions': '*',
            },
            {
                'name': 'Office',
                'description': 'Office staff - customers, jobs, parts, billing and reports; no user or settings admin',
                'apps': ['parties', 'inventory', 'jobs', 'billing'],
            },
            {
                'name': 'Engineer',
                'description': 'Field engineers - their own jobs, job items and parts lookup',
                'permissions': [
                    ('jobs', 'view_job'),
                    ('jobs', 'change_job'),
                    ('jobs', 'view_jobitem'),
                    ('jobs', 'add_jobitem'),
                    ('jobs', 'change_jobitem'),
                    ('jobs', 'delete_jobitem'),
                    ('parties', 'view_customer'),
                    ('inventory', 'view_inventoryitem'),
                ],
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                updated_count += 1

            if group_config.get('permissions') == '*':
                group.permissions.set(Permission.objects.all())
                self.stdout.write(f'  Added all permissions to {group_config["name"]} group')
            elif 'apps' in group_config:
                permissions = Permission.objects.filter(content_type__app_label__in=group_config['apps'])
                group.permissions.set(permissions)
                self.stdout.write(f'  Set {permissions.count()} permissions on {group_config["name"]} group')
            else:
                permissions = []
                for app_label, codename in group_config['permissions']:
                    permission = Permission.objects.filter(
                        content_type__app_label=app_label, codename=codename
                    ).first()
                    if permission:
                        permissions.append(permission)
                    else:
                        self.stdout.write(self.style.WARNING(f'  Permission not found: {app_label}.{codename}'))
                group.permissions.set(permissions)
                self.stdout.write(f'  Set {len(permissions)} permissions on {group_config["name"]} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
