from django.contrib import messages
from django.urls import reverse_lazy
from django.utils.decorators import method_decorator
from django.views.generic import FormView

from .forms import TenantSettingsForm
from .permissions import MANAGER_ROLES, tenant_role_required
from .services import update_whatsapp_number


@method_decorator(tenant_role_required(*MANAGER_ROLES), name="dispatch")
class TenantSettingsView(FormView):
    template_name = "dashboard/settings.html"
    form_class = TenantSettingsForm
    success_url = reverse_lazy("dashboard:settings")

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["instance"] = self.request.tenant
        return kwargs

    def form_valid(self, form):
        tenant = form.save(commit=False)
        tenant.save(update_fields=["contact_email", "contact_phone", "updated_at"])
        update_whatsapp_number(tenant, form.cleaned_data.get("whatsapp_number"))
        messages.success(self.request, "Settings saved.")
        return super().form_valid(form)

    def form_invalid(self, form):
        messages.error(self.request, "Please review the errors below.")
        return super().form_invalid(form)
