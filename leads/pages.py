import logging

from django.contrib import messages
from django.core.exceptions import ValidationError
from django.http import HttpResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.generic import FormView, TemplateView

from tenancy.permissions import MANAGER_ROLES, tenant_role_required

from .forms import LeadUpdateForm
from .models import Lead
from .services import EXPORT_FILENAME, LeadService

logger = logging.getLogger(__name__)


@method_decorator(tenant_role_required(), name="dispatch")
class LeadListView(TemplateView):
    template_name = "dashboard/leads/list.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        service = LeadService(self.request.tenant)
        status = self.request.GET.get("status") or "all"
        search = (self.request.GET.get("q") or "").strip()
        context["leads"] = service.list(status=status, search=search)[:200]
        context["metrics"] = service.metrics()
        context["status_choices"] = Lead.STATUS_CHOICES
        context["current_status"] = status
        context["search"] = search
        return context


@method_decorator(tenant_role_required(), name="dispatch")
class LeadDetailView(FormView):
    template_name = "dashboard/leads/detail.html"
    form_class = LeadUpdateForm

    def dispatch(self, request, *args, **kwargs):
        self.service = LeadService(request.tenant)
        self.lead = self.service.get(kwargs["pk"])
        return super().dispatch(request, *args, **kwargs)

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["tenant"] = self.request.tenant
        kwargs["instance"] = Lead.objects.get(pk=self.lead.pk)
        return kwargs

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context["lead"] = self.lead
        return context

    def get_success_url(self):
        return reverse("dashboard:lead-detail", kwargs={"pk": self.lead.pk})

    def form_valid(self, form):
        try:
            self.service.update(self.lead, {
                "status": form.cleaned_data["status"],
                "notes": form.cleaned_data["notes"],
                "assigned_to": form.cleaned_data["assigned_to"],
            })
        except ValidationError as exc:
            for error in exc.messages:
                form.add_error(None, error)
            return self.form_invalid(form)
        messages.success(self.request, "Lead updated.")
        return super().form_valid(form)

    def form_invalid(self, form):
        messages.error(self.request, "Please review the errors below.")
        return super().form_invalid(form)


@method_decorator(tenant_role_required(*MANAGER_ROLES), name="dispatch")
class LeadDeleteView(View):
    http_method_names = ["post"]

    def post(self, request, pk):
        service = LeadService(request.tenant)
        service.delete(service.get(pk))
        messages.success(request, "Lead deleted.")
        return redirect("dashboard:leads")


@method_decorator(tenant_role_required(), name="dispatch")
class LeadExportView(View):
    http_method_names = ["get"]

    def get(self, request):
        content = LeadService(request.tenant).export_csv()
        response = HttpResponse(content, content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="{EXPORT_FILENAME}"'
        return response
