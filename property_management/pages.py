import logging

from django.contrib import messages
from django.core.exceptions import PermissionDenied, ValidationError
from django.shortcuts import get_object_or_404, redirect
from django.urls import reverse, reverse_lazy
from django.utils.decorators import method_decorator
from django.views import View
from django.views.generic import FormView, TemplateView

from tenancy.permissions import (
    PROPERTY_MANAGEMENT_ROLES,
    property_management_required,
    tenant_role_required,
)

from .forms import (
    LeaseForm,
    MaintenanceAssignForm,
    MaintenanceRequestForm,
    MarkPaidForm,
    PropertyForm,
    TenantProfileForm,
    UnitForm,
)
from .models import Lease, MaintenanceRequest, Payment, Property
from .services import (
    LeaseService,
    MaintenanceService,
    PaymentService,
    PropertyService,
    TenantProfileService,
    UnitService,
    get_overview_stats,
)
from .views import parse_choice_list

logger = logging.getLogger(__name__)

pm_page = [tenant_role_required(*PROPERTY_MANAGEMENT_ROLES), property_management_required]


def _error_messages(exc):
    if isinstance(exc, ValidationError):
        return exc.messages
    return [str(exc) or "You do not have access to that record."]


class ServiceMixin:
    service_class = None

    def get_service(self):
        return self.service_class(self.request.tenant)


class ServiceFormView(ServiceMixin, FormView):
    """FormView whose form is scoped to the tenant and saved through a service."""

    template_name = "dashboard/form.html"
    page_title = ""
    success_message = "Saved."

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["tenant"] = self.request.tenant
        return kwargs

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["page_title"] = self.page_title
        context["cancel_url"] = self.success_url
        return context

    def save(self, form):
        return self.get_service().create(dict(form.cleaned_data))

    def form_valid(self, form):
        try:
            self.object = self.save(form)
        except (ValidationError, PermissionDenied) as exc:
            for error in _error_messages(exc):
                form.add_error(None, error)
            return self.form_invalid(form)
        messages.success(self.request, self.success_message)
        return super().form_valid(form)

    def form_invalid(self, form):
        messages.error(self.request, "Please review the errors below.")
        return super().form_invalid(form)


# =============================================================================
# OVERVIEW
# =============================================================================

@method_decorator(pm_page, name="dispatch")
class OverviewView(TemplateView):
    template_name = "dashboard/pm/overview.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        tenant = self.request.tenant
        context["stats"] = get_overview_stats(tenant)
        context["open_maintenance"] = MaintenanceService(tenant).list(
            statuses=MaintenanceRequest.OPEN_STATUSES, limit=5
        )
        return context


# =============================================================================
# PROPERTIES & UNITS
# =============================================================================

@method_decorator(pm_page, name="dispatch")
class PropertyListView(ServiceMixin, TemplateView):
    template_name = "dashboard/pm/properties.html"
    service_class = PropertyService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        search = self.request.GET.get("search", "").strip()
        context["search"] = search
        context["properties"] = self.get_service().list(search=search or None)
        return context


@method_decorator(pm_page, name="dispatch")
class PropertyCreateView(ServiceFormView):
    form_class = PropertyForm
    service_class = PropertyService
    page_title = "Add property"
    success_message = "Property created."
    success_url = reverse_lazy("dashboard:pm-properties")

    def get_success_url(self):
        return reverse("dashboard:pm-property-detail", args=[self.object.pk])


@method_decorator(pm_page, name="dispatch")
class PropertyDetailView(ServiceMixin, TemplateView):
    template_name = "dashboard/pm/property_detail.html"
    service_class = PropertyService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        prop = self.get_service().get(self.kwargs["pk"])
        context["property"] = prop
        context["units"] = UnitService(self.request.tenant).list_by_property(prop.pk)
        context["listings"] = prop.listings.all()
        context["unit_form"] = UnitForm(tenant=self.request.tenant, initial={"property": prop})
        return context


@method_decorator(pm_page, name="dispatch")
class UnitCreateView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        prop = get_object_or_404(Property, pk=pk, tenant=request.tenant)
        data = request.POST.copy()
        data["property"] = prop.pk
        form = UnitForm(data, tenant=request.tenant)
        if form.is_valid():
            unit = UnitService(request.tenant).create(dict(form.cleaned_data))
            messages.success(request, f"Unit {unit.label} added to {prop.name}.")
        else:
            for errors in form.errors.values():
                for error in errors:
                    messages.error(request, error)
        return redirect("dashboard:pm-property-detail", pk=prop.pk)


# =============================================================================
# TENANT PROFILES
# =============================================================================

@method_decorator(pm_page, name="dispatch")
class TenantProfileListView(ServiceMixin, TemplateView):
    template_name = "dashboard/pm/tenant_profiles.html"
    service_class = TenantProfileService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        search = self.request.GET.get("search", "").strip()
        context["search"] = search
        context["profiles"] = self.get_service().list(search=search or None)
        return context


@method_decorator(pm_page, name="dispatch")
class TenantProfileCreateView(ServiceFormView):
    form_class = TenantProfileForm
    service_class = TenantProfileService
    page_title = "Add tenant"
    success_message = "Tenant profile created."
    success_url = reverse_lazy("dashboard:pm-tenant-profiles")


# =============================================================================
# LEASES
# =============================================================================

@method_decorator(pm_page, name="dispatch")
class LeaseListView(ServiceMixin, TemplateView):
    template_name = "dashboard/pm/leases.html"
    service_class = LeaseService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        statuses = parse_choice_list(self.request.GET.get("status"), Lease.STATUS_CHOICES)
        context["status"] = statuses[0] if statuses else ""
        context["status_choices"] = Lease.STATUS_CHOICES
        context["leases"] = self.get_service().list(statuses=statuses)
        return context


@method_decorator(pm_page, name="dispatch")
class LeaseCreateView(ServiceFormView):
    form_class = LeaseForm
    service_class = LeaseService
    page_title = "New lease"
    success_message = "Lease created."
    success_url = reverse_lazy("dashboard:pm-leases")

    def save(self, form):
        data = dict(form.cleaned_data)
        generate_months = data.pop("generate_months", 0) or 0
        return self.get_service().create(data, generate_months=generate_months, user=self.request.user)


@method_decorator(pm_page, name="dispatch")
class LeaseTerminateView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = LeaseService(request.tenant)
        lease = service.get(pk)
        try:
            service.terminate(lease, user=request.user, reason=request.POST.get("reason", ""))
        except ValidationError as exc:
            for error in exc.messages:
                messages.error(request, error)
        else:
            messages.success(request, f"Lease for {lease.tenant_profile} terminated.")
        return redirect("dashboard:pm-leases")


# =============================================================================
# PAYMENTS
# =============================================================================

@method_decorator(pm_page, name="dispatch")
class PaymentListView(ServiceMixin, TemplateView):
    template_name = "dashboard/pm/payments.html"
    service_class = PaymentService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        statuses = parse_choice_list(self.request.GET.get("status"), Payment.STATUS_CHOICES)
        context["status"] = statuses[0] if statuses else ""
        context["status_choices"] = Payment.STATUS_CHOICES
        context["payments"] = self.get_service().list(statuses=statuses)
        context["mark_paid_form"] = MarkPaidForm()
        return context


@method_decorator(pm_page, name="dispatch")
class PaymentMarkPaidView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = PaymentService(request.tenant)
        payment = service.get(pk)
        form = MarkPaidForm(request.POST)
        if not form.is_valid():
            messages.error(request, "Enter an amount greater than zero.")
            return redirect("dashboard:pm-payments")
        try:
            payment = service.mark_paid(payment, **form.cleaned_data)
        except ValidationError as exc:
            for error in exc.messages:
                messages.error(request, error)
        else:
            messages.success(request, f"Payment recorded. Status: {payment.get_status_display()}.")
        return redirect("dashboard:pm-payments")


# =============================================================================
# MAINTENANCE
# =============================================================================

@method_decorator(pm_page, name="dispatch")
class MaintenanceListView(ServiceMixin, TemplateView):
    template_name = "dashboard/pm/maintenance.html"
    service_class = MaintenanceService

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        params = self.request.GET
        context["requests"] = self.get_service().list(
            statuses=parse_choice_list(params.get("status"), MaintenanceRequest.STATUS_CHOICES),
            priorities=parse_choice_list(params.get("priority"), MaintenanceRequest.PRIORITY_CHOICES),
        )
        context["status_choices"] = MaintenanceRequest.STATUS_CHOICES
        context["assign_form"] = MaintenanceAssignForm(tenant=self.request.tenant)
        return context


@method_decorator(pm_page, name="dispatch")
class MaintenanceCreateView(ServiceFormView):
    form_class = MaintenanceRequestForm
    service_class = MaintenanceService
    page_title = "Log maintenance request"
    success_message = "Maintenance request logged."
    success_url = reverse_lazy("dashboard:pm-maintenance")


@method_decorator(pm_page, name="dispatch")
class MaintenanceStatusView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = MaintenanceService(request.tenant)
        ticket = service.get(pk)
        status = request.POST.get("status", "").upper()
        if status not in dict(MaintenanceRequest.STATUS_CHOICES):
            messages.error(request, "Invalid status requested.")
            return redirect("dashboard:pm-maintenance")
        service.update_status(ticket, status)
        messages.success(request, f"Request marked {ticket.get_status_display().lower()}.")
        return redirect("dashboard:pm-maintenance")


@method_decorator(pm_page, name="dispatch")
class MaintenanceAssignView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = MaintenanceService(request.tenant)
        ticket = service.get(pk)
        form = MaintenanceAssignForm(request.POST, tenant=request.tenant)
        if form.is_valid():
            service.assign(
                ticket,
                form.cleaned_data["assigned_to"],
                scheduled_at=form.cleaned_data.get("scheduled_at"),
            )
            messages.success(request, "Request assigned.")
        else:
            for errors in form.errors.values():
                for error in errors:
                    messages.error(request, error)
        return redirect("dashboard:pm-maintenance")
