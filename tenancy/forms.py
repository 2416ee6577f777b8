from django import forms

from .models import Tenant


class TenantSettingsForm(forms.ModelForm):
    class Meta:
        model = Tenant
        fields = ['whatsapp_number', 'contact_email', 'contact_phone']
        widgets = {
            'whatsapp_number': forms.TextInput(attrs={'class': 'input', 'placeholder': '+44 7700 900123'}),
            'contact_email': forms.EmailInput(attrs={'class': 'input'}),
            'contact_phone': forms.TextInput(attrs={'class': 'input'}),
        }
        labels = {
            'whatsapp_number': 'WhatsApp number',
        }
