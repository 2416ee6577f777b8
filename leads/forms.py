from django import forms
from django.contrib.auth import get_user_model

from .models import Lead


class LeadForm(forms.Form):
    """Public enquiry form on the listing page and the contact page."""

    name = forms.CharField(max_length=255, widget=forms.TextInput(attrs={"class": "input"}))
    email = forms.EmailField(widget=forms.EmailInput(attrs={"class": "input"}))
    phone = forms.CharField(max_length=50, required=False, widget=forms.TextInput(attrs={"class": "input"}))
    message = forms.CharField(widget=forms.Textarea(attrs={"rows": 4}))


class LeadUpdateForm(forms.ModelForm):
    class Meta:
        model = Lead
        fields = ["status", "notes", "assigned_to"]
        widgets = {
            "notes": forms.Textarea(attrs={"rows": 4}),
        }

    def __init__(self, *args, tenant=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["assigned_to"].queryset = get_user_model().objects.filter(
            memberships__tenant=tenant
        ).order_by("email")
        self.fields["assigned_to"].required = False
