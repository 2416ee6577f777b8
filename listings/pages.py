"""
Server-rendered pages for listings.

Public site: home, search, listing detail (with the enquiry form),
WhatsApp click tracking, sitemap.xml and robots.txt.

Back office: listing table, create/edit, status change, delete, CSV
import, geocode backfill and conversion into a managed property.
"""

import logging
from dataclasses import replace

from django.conf import settings
from django.contrib import messages
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import Http404, HttpResponseBadRequest
from django.shortcuts import redirect, render
from django.urls import reverse, reverse_lazy
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.http import require_GET
from django.views.generic import FormView, TemplateView

from estate_site.middleware import get_client_ip
from leads.forms import LeadForm
from leads.services import LeadService
from services.parsing import parse_int
from tenancy.permissions import (
    ALL_ROLES,
    MANAGER_ROLES,
    PROPERTY_MANAGEMENT_ROLES,
    property_management_required,
    tenant_role_required,
)
from tenancy.resolution import require_tenant

from .forms import ListingForm, ListingImportForm, ListingStatusForm
from .models import STATUS_CHOICES, TYPE_CHOICES, Listing
from .search import build_filters, search_service
from .services import (
    ImportFileError,
    ListingImportService,
    ListingService,
    SlugConflictError,
    build_whatsapp_url,
    get_sitemap_entries,
    record_whatsapp_click,
)

logger = logging.getLogger(__name__)

HOME_LISTING_COUNT = 6


# =============================================================================
# PUBLIC SITE
# =============================================================================

class HomeView(TemplateView):
    template_name = "public/home.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        tenant = self.request.tenant
        context["listings"] = (
            ListingService(tenant).list()[:HOME_LISTING_COUNT] if tenant else []
        )
        return context


class SearchView(TemplateView):
    template_name = "public/search.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        tenant = require_tenant(self.request)
        filters = build_filters(self.request.GET, public=True)
        try:
            result = search_service.search(tenant, filters)
        except ValidationError:
            logger.info(f"Ignoring invalid search cursor for {tenant.slug}")
            filters = replace(filters, cursor="")
            result = search_service.search(tenant, filters)

        next_url = None
        if result.next_cursor:
            params = self.request.GET.copy()
            params["cursor"] = result.next_cursor
            next_url = f"{reverse('public:search')}?{params.urlencode()}"

        context.update({
            "filters": filters,
            "listings": result.listings,
            "has_more": result.has_more,
            "next_url": next_url,
            "type_choices": TYPE_CHOICES,
            "query": self.request.GET,
        })
        return context


class ListingDetailView(View):
    """Listing page; POST submits the enquiry form for this listing."""

    template_name = "public/listing_detail.html"
    http_method_names = ["get", "post"]

    def get_listing(self, request, slug):
        return ListingService(require_tenant(request)).get_public(slug)

    def render_page(self, request, listing, form):
        tenant = listing.tenant
        whatsapp_url = None
        if tenant.whatsapp_number:
            whatsapp_url = (
                f"{reverse('whatsapp-track')}?number={tenant.whatsapp_number.lstrip('+')}"
                f"&listing={listing.pk}"
            )
        return render(request, self.template_name, {
            "listing": listing,
            "form": form,
            "whatsapp_url": whatsapp_url,
            "turnstile_site_key": settings.TURNSTILE_SITE_KEY,
        })

    def get(self, request, slug):
        listing = self.get_listing(request, slug)
        return self.render_page(request, listing, LeadForm())

    def post(self, request, slug):
        listing = self.get_listing(request, slug)
        form = LeadForm(request.POST)
        if not form.is_valid():
            messages.error(request, "Please review the errors below.")
            return self.render_page(request, listing, form)

        try:
            LeadService(listing.tenant).create(
                {**form.cleaned_data, "listing": listing},
                turnstile_token=request.POST.get("cf-turnstile-response"),
                remote_ip=get_client_ip(request),
            )
        except ValidationError as exc:
            for error in exc.messages:
                form.add_error(None, error)
            messages.error(request, "Your enquiry could not be sent.")
            return self.render_page(request, listing, form)

        messages.success(request, "Thanks! The agent will be in touch shortly.")
        return redirect(listing.get_absolute_url())


@require_GET
def whatsapp_track(request):
    """
    Record a WhatsApp click and redirect to wa.me.

    GET /whatsapp/track/?number=447700900123&message=...&listing=12
    """
    tenant = require_tenant(request)
    number = (request.GET.get("number") or "").strip()
    if not number:
        return HttpResponseBadRequest("Missing number")

    listing = None
    listing_param = request.GET.get("listing")
    if listing_param:
        listing_id = parse_int(listing_param)
        listing = Listing.objects.filter(tenant=tenant, pk=listing_id).first() if listing_id else None
        if listing is None:
            raise Http404("Listing not found")

    try:
        record_whatsapp_click(
            tenant,
            listing=listing,
            ip_address=get_client_ip(request),
            user_agent=request.META.get("HTTP_USER_AGENT", "unknown"),
        )
    except DatabaseError as e:
        logger.error(f"Failed to record WhatsApp click for {tenant.slug}: {str(e)}")

    return redirect(build_whatsapp_url(number, request.GET.get("message")))


@require_GET
def sitemap_xml(request):
    tenant = require_tenant(request)
    return render(
        request,
        "sitemap.xml",
        {"entries": get_sitemap_entries(tenant)},
        content_type="application/xml",
    )


@require_GET
def robots_txt(request):
    return render(
        request,
        "robots.txt",
        {"sitemap_url": f"{settings.APP_URL}{reverse('sitemap')}"},
        content_type="text/plain",
    )


# =============================================================================
# BACK OFFICE
# =============================================================================

@method_decorator(tenant_role_required(*ALL_ROLES), name="dispatch")
class ListingListView(TemplateView):
    template_name = "dashboard/listings/list.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        status = self.request.GET.get("status") or "all"
        if status != "all" and status not in dict(STATUS_CHOICES):
            status = "all"
        context["listings"] = ListingService(self.request.tenant).list(status=status)
        context["current_status"] = status
        context["status_choices"] = STATUS_CHOICES
        context["status_form"] = ListingStatusForm()
        return context


class ListingFormMixin:
    template_name = "dashboard/form.html"
    form_class = ListingForm
    success_url = reverse_lazy("dashboard:listings")
    page_title = ""

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["tenant"] = self.request.tenant
        return kwargs

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["page_title"] = self.page_title
        context["cancel_url"] = self.success_url
        return context

    def save(self, service, form):
        raise NotImplementedError

    def form_valid(self, form):
        service = ListingService(self.request.tenant)
        try:
            listing = self.save(service, form)
        except SlugConflictError as exc:
            form.add_error("slug", str(exc))
            return self.form_invalid(form)
        messages.success(self.request, f"Listing \"{listing.title}\" saved.")
        return super().form_valid(form)

    def form_invalid(self, form):
        messages.error(self.request, "Please review the errors below.")
        return super().form_invalid(form)


@method_decorator(tenant_role_required(*ALL_ROLES), name="dispatch")
class ListingCreateView(ListingFormMixin, FormView):
    page_title = "New listing"

    def save(self, service, form):
        return service.create(form.listing_data())


@method_decorator(tenant_role_required(*ALL_ROLES), name="dispatch")
class ListingUpdateView(ListingFormMixin, FormView):
    page_title = "Edit listing"

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["instance"] = ListingService(self.request.tenant).get(self.kwargs["pk"])
        return kwargs

    def save(self, service, form):
        # The form mutates its instance while validating; update a fresh copy
        listing = service.get(self.kwargs["pk"])
        return service.update(listing, form.listing_data())


@method_decorator(tenant_role_required(*ALL_ROLES), name="dispatch")
class ListingStatusView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = ListingService(request.tenant)
        listing = service.get(pk)
        form = ListingStatusForm(request.POST)
        if form.is_valid():
            service.set_status(listing, form.cleaned_data["status"])
            messages.success(request, f"\"{listing.title}\" is now {listing.get_status_display().lower()}.")
        else:
            messages.error(request, "Invalid status requested.")
        return redirect("dashboard:listings")


@method_decorator(tenant_role_required(*MANAGER_ROLES), name="dispatch")
class ListingDeleteView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = ListingService(request.tenant)
        listing = service.get(pk)
        title = listing.title
        service.delete(listing)
        messages.success(request, f"Listing \"{title}\" deleted.")
        return redirect("dashboard:listings")


@method_decorator(tenant_role_required(*ALL_ROLES), name="dispatch")
class ListingImportView(FormView):
    template_name = "dashboard/listings/import.html"
    form_class = ListingImportForm

    def form_valid(self, form):
        try:
            results = ListingImportService(self.request.tenant).import_file(form.cleaned_data["file"])
        except ImportFileError as exc:
            form.add_error("file", exc.message)
            return self.form_invalid(form)

        if results["skipped"]:
            messages.warning(self.request, results["message"])
        else:
            messages.success(self.request, results["message"])
        return self.render_to_response(
            self.get_context_data(form=self.form_class(), results=results)
        )

    def form_invalid(self, form):
        messages.error(self.request, "The file could not be imported.")
        return super().form_invalid(form)


@method_decorator(tenant_role_required(*ALL_ROLES), name="dispatch")
class ListingGeocodeBackfillView(View):
    http_method_names = ["post"]

    def post(self, request):
        results = ListingService(request.tenant).geocode_backfill()
        if not results["total"]:
            messages.info(request, "Every listing already has coordinates.")
        elif results["failed"]:
            messages.warning(
                request,
                f"Geocoded {results['success']} of {results['total']} listings; "
                f"{results['failed']} could not be located."
            )
        else:
            messages.success(request, f"Geocoded {results['success']} listing(s).")
        return redirect("dashboard:listings")


@method_decorator(
    [tenant_role_required(*PROPERTY_MANAGEMENT_ROLES), property_management_required],
    name="dispatch",
)
class ListingConvertView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = ListingService(request.tenant)
        listing = service.get(pk)
        create_unit = request.POST.get("create_unit", "on") not in ("", "0", "false", "off")
        try:
            prop, unit = service.convert_to_property(listing, create_unit=create_unit)
        except ValidationError as exc:
            for error in exc.messages:
                messages.error(request, error)
            return redirect("dashboard:listings")

        messages.success(request, f"Created managed property \"{prop.name}\".")
        return redirect("dashboard:pm-property-detail", pk=prop.pk)
