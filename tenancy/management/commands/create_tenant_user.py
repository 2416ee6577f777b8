"""
Create a back-office user for a tenant.

Usage:
    python manage.py create_tenant_user --tenant acme --email jo@acme.test
    python manage.py create_tenant_user --tenant acme --email jo@acme.test --role agent --password secret123
"""

from django.core.management.base import BaseCommand, CommandError

from tenancy.models import Membership, Tenant
from tenancy.services import create_tenant_user


class Command(BaseCommand):
    help = 'Create (or reuse) a user and give them a role in a tenant'

    def add_arguments(self, parser):
        parser.add_argument('--tenant', required=True, help='Tenant slug')
        parser.add_argument('--email', required=True, help='User email (also used as username)')
        parser.add_argument(
            '--role',
            default=Membership.ROLE_ADMIN,
            choices=[choice for choice, _label in Membership.ROLE_CHOICES],
            help='Role inside the tenant (default: admin)',
        )
        parser.add_argument('--password', help='Password for a newly created user')
        parser.add_argument('--name', default='', help='Full name for a newly created user')

    def handle(self, *args, **options):
        try:
            tenant = Tenant.objects.get(slug=options['tenant'])
        except Tenant.DoesNotExist:
            raise CommandError(f"Tenant '{options['tenant']}' not found")

        membership, created = create_tenant_user(
            tenant,
            options['email'],
            role=options['role'],
            password=options['password'],
            name=options['name'],
        )

        if created:
            self.stdout.write(self.style.SUCCESS(
                f'✓ {membership.user.email} added to {tenant.slug} as {membership.role}'
            ))
        else:
            self.stdout.write(self.style.WARNING(
                f'⊘ {membership.user.email} is already a member of {tenant.slug} ({membership.role})'
            ))
