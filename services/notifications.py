"""
Outbound email for the estate site.

Every send renders a plain-text and an HTML template and goes through
Django's configured EMAIL_BACKEND. Delivery problems are logged and
reported as False; they never propagate into the request or job that
triggered them.
"""

import logging
from typing import Dict, Iterable, List, Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


class EmailService:
    """Builds and sends the site's notification emails."""

    @property
    def from_email(self) -> str:
        return settings.DEFAULT_FROM_EMAIL

    def send(
        self,
        subject: str,
        template: str,
        context: Dict,
        to: Iterable[str],
        reply_to: Optional[List[str]] = None,
    ) -> bool:
        """
        Render `template`.txt / `template`.html and send them.

        Returns:
            True when the backend accepted the message
        """
        recipients = [address for address in to if address]
        if not recipients:
            logger.warning(f"Email '{subject}' has no recipients, not sending")
            return False

        context = {'app_url': settings.APP_URL, **context}
        try:
            text_body = render_to_string(f"{template}.txt", context)
            html_body = render_to_string(f"{template}.html", context)

            message = EmailMultiAlternatives(
                subject=subject,
                body=text_body,
                from_email=self.from_email,
                to=recipients,
                reply_to=reply_to,
            )
            message.attach_alternative(html_body, "text/html")
            message.send()
        except Exception as e:
            logger.error(f"Failed to send email '{subject}' to {', '.join(recipients)}: {str(e)}")
            return False

        logger.info(f"Sent email '{subject}' to {', '.join(recipients)}")
        return True

    # =========================================================================
    # LEADS
    # =========================================================================

    def send_lead_notification(self, lead) -> bool:
        """Tell the agency about a new lead; replies go to the enquirer."""
        tenant = lead.tenant
        if lead.listing_id:
            subject = f"New lead for: {lead.listing.title}"
        else:
            subject = f"New lead from {lead.name}"

        return self.send(
            subject,
            'emails/lead_notification',
            {'lead': lead, 'tenant': tenant, 'listing': lead.listing},
            to=[tenant.notification_email],
            reply_to=[lead.email],
        )

    def send_leads_digest(self, tenant, summary: Dict) -> bool:
        return self.send(
            f"{tenant.name}: {summary['total']} new leads in the last {summary['days']} days",
            'emails/leads_digest',
            {'tenant': tenant, 'summary': summary},
            to=[tenant.notification_email],
        )

    # =========================================================================
    # PROPERTY MANAGEMENT
    # =========================================================================

    def send_rent_reminder(self, payment) -> bool:
        lease = payment.lease
        profile = lease.tenant_profile
        tenant = payment.tenant
        return self.send(
            f"Rent reminder: {payment.amount_outstanding} due {payment.due_date:%d %b %Y}",
            'emails/rent_reminder',
            {'payment': payment, 'lease': lease, 'profile': profile, 'tenant': tenant},
            to=[profile.email],
            reply_to=[tenant.notification_email],
        )

    def send_maintenance_sla_alert(self, tenant, requests) -> bool:
        return self.send(
            f"{len(requests)} maintenance request(s) past their SLA",
            'emails/maintenance_sla',
            {'tenant': tenant, 'requests': requests},
            to=[tenant.notification_email],
        )


# Singleton instance
email_service = EmailService()
