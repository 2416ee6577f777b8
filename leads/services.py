"""
Lead business logic.

- LeadService.create: public lead capture with bot verification and an
  agency notification sent after the transaction commits
- LeadService.update: back-office status/notes/assignment changes
- export_csv / metrics / digest: reporting for the dashboard and the
  weekly digest job

Notification emails never block or fail a lead submission.
"""

import csv
import io
import logging
from datetime import timedelta
from typing import Dict, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from listings.models import Listing, WhatsAppClick
from services.notifications import email_service
from services.parsing import parse_int
from services.turnstile import verify_turnstile_token
from tenancy.models import Membership

from .models import Lead

logger = logging.getLogger(__name__)

STATUS_VALUES = [value for value, _label in Lead.STATUS_CHOICES]

EXPORT_HEADERS = ['Name', 'Email', 'Phone', 'Listing', 'Message', 'Source', 'Date']
EXPORT_FILENAME = 'leads.csv'

DIGEST_LEAD_LIMIT = 20


def notify_new_lead(lead_id: int) -> bool:
    """Send the agency notification for a lead; failures are logged only."""
    lead = Lead.objects.select_related('tenant', 'listing').filter(pk=lead_id).first()
    if lead is None:
        logger.warning(f"Lead {lead_id} vanished before its notification was sent")
        return False
    sent = email_service.send_lead_notification(lead)
    if not sent:
        logger.warning(f"Lead {lead_id} notification was not sent")
    return sent


class LeadService:

    def __init__(self, tenant):
        self.tenant = tenant

    def queryset(self):
        return Lead.objects.filter(tenant=self.tenant).select_related('listing', 'assigned_to')

    def list(self, status: Optional[str] = None, listing_id=None, search: Optional[str] = None):
        queryset = self.queryset()
        if status and status != 'all':
            queryset = queryset.filter(status=status)
        listing_id = parse_int(listing_id)
        if listing_id:
            queryset = queryset.filter(listing_id=listing_id)
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(email__icontains=search))
        return queryset.order_by('-created_at', '-id')

    def get(self, pk):
        return get_object_or_404(self.queryset(), pk=pk)

    # =========================================================================
    # CAPTURE
    # =========================================================================

    def resolve_listing(self, listing) -> Optional[Listing]:
        """Accept a Listing or an id; it must belong to this tenant (404 otherwise)."""
        if listing in (None, ''):
            return None
        listing_id = listing.pk if isinstance(listing, Listing) else listing
        return get_object_or_404(Listing, tenant=self.tenant, pk=listing_id)

    def create(self, data: Dict, turnstile_token: Optional[str] = None,
               remote_ip: Optional[str] = None) -> Lead:
        """
        Store a public enquiry and notify the agency once it commits.

        Raises:
            ValidationError: missing fields or failed bot verification
            Http404: listing is not one of this tenant's listings
        """
        errors = {
            field: 'This field is required.'
            for field in ('name', 'email', 'message')
            if not (data.get(field) or '').strip()
        }
        if errors:
            raise ValidationError(errors)

        if not verify_turnstile_token(turnstile_token, remote_ip):
            logger.warning(f"Lead from {remote_ip} for {self.tenant.slug} failed bot verification")
            raise ValidationError('Bot verification failed')

        listing = self.resolve_listing(data.get('listing'))

        lead = Lead.objects.create(
            tenant=self.tenant,
            listing=listing,
            name=data['name'].strip(),
            email=data['email'].strip(),
            phone=(data.get('phone') or '').strip() or None,
            message=data['message'].strip(),
            source=Lead.SOURCE_FORM,
        )
        logger.info(f"New lead {lead.pk} for {self.tenant.slug} (listing {lead.listing_id})")

        lead_id = lead.pk
        transaction.on_commit(lambda: notify_new_lead(lead_id))
        return lead

    # =========================================================================
    # BACK OFFICE
    # =========================================================================

    def update(self, lead: Lead, data: Dict) -> Lead:
        """
        Apply status, notes and assigned_to changes.

        Raises:
            ValidationError: unknown status, or assignee outside the tenant
        """
        update_fields = []

        if 'status' in data:
            status = data['status']
            if status not in STATUS_VALUES:
                raise ValidationError({'status': f'Invalid status: {status}'})
            lead.status = status
            update_fields.append('status')

        if 'notes' in data:
            lead.notes = data['notes']
            update_fields.append('notes')

        if 'assigned_to' in data:
            user = data['assigned_to']
            if user is not None and not Membership.objects.filter(
                    tenant=self.tenant, user=user).exists():
                raise ValidationError({'assigned_to': 'User is not a member of this agency'})
            lead.assigned_to = user
            update_fields.append('assigned_to')

        if update_fields:
            lead.save(update_fields=update_fields + ['updated_at'])
        return lead

    def delete(self, lead: Lead):
        logger.info(f"Deleting lead {lead.pk} for {self.tenant.slug}")
        lead.delete()

    # =========================================================================
    # REPORTING
    # =========================================================================

    def export_csv(self, queryset=None) -> str:
        """All leads (or `queryset`) as CSV text, every cell quoted."""
        queryset = self.list(status='all') if queryset is None else queryset
        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_ALL)
        writer.writerow(EXPORT_HEADERS)
        for lead in queryset:
            writer.writerow([
                lead.name,
                lead.email,
                lead.phone or '',
                lead.listing_title,
                lead.message,
                lead.source,
                lead.created_at.isoformat(),
            ])
        return output.getvalue()

    def metrics(self, now=None) -> Dict:
        now = now or timezone.now()
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)

        leads = Lead.objects.filter(tenant=self.tenant)
        by_status = {value: 0 for value in STATUS_VALUES}
        for row in leads.values('status').annotate(count=Count('id')).order_by():
            by_status[row['status']] = row['count']
        by_source = {
            row['source']: row['count']
            for row in leads.values('source').annotate(count=Count('id')).order_by()
        }

        clicks = WhatsAppClick.objects.filter(tenant=self.tenant)
        return {
            'total': leads.count(),
            'by_status': by_status,
            'last_7_days': leads.filter(created_at__gte=week_ago).count(),
            'last_30_days': leads.filter(created_at__gte=month_ago).count(),
            'by_source': by_source,
            'whatsapp_clicks': {
                'total': clicks.count(),
                'last_7_days': clicks.filter(created_at__gte=week_ago).count(),
                'last_30_days': clicks.filter(created_at__gte=month_ago).count(),
                'unique_ips': clicks.values('ip_address').order_by().distinct().count(),
            },
        }

    def digest(self, days: int = 7, now=None) -> Dict:
        """Summary of leads created in the last `days` days."""
        now = now or timezone.now()
        since = now - timedelta(days=days)
        recent = self.queryset().filter(created_at__gte=since).order_by('-created_at', '-id')

        by_status = {
            row['status']: row['count']
            for row in recent.values('status').annotate(count=Count('id')).order_by()
        }
        return {
            'days': days,
            'since': since,
            'total': recent.count(),
            'by_status': by_status,
            'leads': list(recent[:DIGEST_LEAD_LIMIT]),
        }
