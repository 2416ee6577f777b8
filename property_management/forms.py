from decimal import Decimal

from django import forms
from django.contrib.auth import get_user_model

from .models import Lease, MaintenanceRequest, Property, TenantProfile, Unit


class TenantScopedForm(forms.ModelForm):
    """Limits related-record choices to the agency the form is built for."""

    scoped_fields = {}

    def __init__(self, *args, tenant=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.tenant = tenant
        for field_name, model in self.scoped_fields.items():
            if field_name in self.fields:
                self.fields[field_name].queryset = model.objects.filter(tenant=tenant)
        for field in self.fields.values():
            field.widget.attrs.setdefault("class", "input")


class PropertyForm(TenantScopedForm):
    class Meta:
        model = Property
        fields = [
            "name",
            "code",
            "description",
            "address_line1",
            "address_line2",
            "city",
            "postcode",
            "country",
            "owner_name",
            "owner_email",
            "owner_phone",
        ]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 3}),
        }


class UnitForm(TenantScopedForm):
    scoped_fields = {"property": Property}

    class Meta:
        model = Unit
        fields = [
            "property",
            "label",
            "floor",
            "bedrooms",
            "bathrooms",
            "square_feet",
            "status",
            "rent_amount",
            "deposit",
            "available_from",
            "notes",
        ]
        widgets = {
            "available_from": forms.DateInput(attrs={"type": "date"}),
            "notes": forms.Textarea(attrs={"rows": 2}),
        }


class TenantProfileForm(TenantScopedForm):
    class Meta:
        model = TenantProfile
        fields = ["first_name", "last_name", "email", "phone", "date_of_birth", "notes"]
        widgets = {
            "date_of_birth": forms.DateInput(attrs={"type": "date"}),
            "notes": forms.Textarea(attrs={"rows": 2}),
        }


class LeaseForm(TenantScopedForm):
    scoped_fields = {"unit": Unit, "tenant_profile": TenantProfile}

    generate_months = forms.IntegerField(
        label="Schedule monthly payments",
        min_value=0,
        max_value=120,
        required=False,
        initial=0,
        help_text="Number of monthly rent payments to create from the start date.",
    )

    class Meta:
        model = Lease
        fields = [
            "unit",
            "tenant_profile",
            "start_date",
            "end_date",
            "rent_amount",
            "deposit_amount",
            "status",
            "billing_interval",
            "notice_period_days",
        ]
        widgets = {
            "start_date": forms.DateInput(attrs={"type": "date"}),
            "end_date": forms.DateInput(attrs={"type": "date"}),
        }

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get("start_date")
        end_date = cleaned_data.get("end_date")
        if start_date and end_date and end_date < start_date:
            self.add_error("end_date", "End date must be after start date.")
        return cleaned_data


class MarkPaidForm(forms.Form):
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    method = forms.CharField(max_length=50, required=False)
    reference = forms.CharField(max_length=100, required=False)


class MaintenanceRequestForm(TenantScopedForm):
    scoped_fields = {"property": Property, "unit": Unit, "tenant_profile": TenantProfile}

    class Meta:
        model = MaintenanceRequest
        fields = ["property", "unit", "tenant_profile", "summary", "description", "priority"]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 3}),
        }

    def clean(self):
        cleaned_data = super().clean()
        prop = cleaned_data.get("property")
        unit = cleaned_data.get("unit")
        if prop and unit and unit.property_id != prop.pk:
            self.add_error("unit", "Unit does not belong to the selected property.")
        return cleaned_data


class MaintenanceAssignForm(forms.Form):
    assigned_to = forms.ModelChoiceField(queryset=get_user_model().objects.none())
    scheduled_at = forms.DateTimeField(
        required=False,
        widget=forms.DateTimeInput(attrs={"type": "datetime-local"}),
    )

    def __init__(self, *args, tenant=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["assigned_to"].queryset = get_user_model().objects.filter(
            memberships__tenant=tenant
        ).distinct()
