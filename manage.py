#!/usr/bin/env python
"""
Django's command-line utility for administrative tasks.

Estate Site Management Script
=============================

Development:
  python manage.py runserver                  # Start development server
  python manage.py migrate                    # Apply migrations
  python manage.py seed_demo                  # Demo tenants and listings
  python manage.py test                       # Run tests

Tenants & users:
  python manage.py create_tenant_user --tenant acme --email jo@example.com --role admin

Listings:
  python manage.py import_listings <file> --tenant acme
  python manage.py geocode_listings [--tenant acme] [--delay 0.2]
  python manage.py rebuild_sitemaps           # cron: 0 2 * * *

Leads:
  python manage.py send_leads_digest --days=7 # cron: 0 9 * * 1

Property management (cron):
  python manage.py generate_rent_payments --months-ahead=1
  python manage.py send_rent_reminders --days-ahead=3
  python manage.py check_maintenance_sla
  python manage.py expire_leases
"""

import os
import sys


def main():
    """Run administrative tasks."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'estate_site.settings')

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        error_msg = (
            "Couldn't import Django. This usually means:\n"
            "  1. Django is not installed - run: pip install -e .\n"
            "  2. Virtual environment is not activated\n"
            "  3. PYTHONPATH is not set correctly\n\n"
            f"Current Python path: {sys.executable}\n"
            f"DJANGO_SETTINGS_MODULE: {os.environ.get('DJANGO_SETTINGS_MODULE', 'Not set')}\n"
        )
        raise ImportError(error_msg) from exc

    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
