from django import forms

from services.parsing import split_list

from .models import STATUS_CHOICES, Listing


class ListingForm(forms.ModelForm):
    features_text = forms.CharField(
        label="Features",
        required=False,
        help_text="Comma-separated, e.g. garden, parking, balcony",
        widget=forms.TextInput(attrs={"class": "input"}),
    )

    class Meta:
        model = Listing
        fields = [
            "title",
            "slug",
            "status",
            "type",
            "price",
            "currency",
            "bedrooms",
            "bathrooms",
            "property_type",
            "address_line1",
            "city",
            "postcode",
            "lat",
            "lng",
            "description",
        ]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 6}),
        }
        labels = {
            "address_line1": "Address",
            "lat": "Latitude",
            "lng": "Longitude",
        }

    def __init__(self, *args, tenant=None, **kwargs):
        self.tenant = tenant
        super().__init__(*args, **kwargs)
        if self.instance.pk:
            self.fields["features_text"].initial = ", ".join(self.instance.features or [])

    def clean_slug(self):
        return self.cleaned_data["slug"].lower()

    def clean_currency(self):
        return (self.cleaned_data.get("currency") or "").upper()

    def clean(self):
        cleaned_data = super().clean()
        lat = cleaned_data.get("lat")
        lng = cleaned_data.get("lng")
        if (lat is None) != (lng is None):
            raise forms.ValidationError("Provide both latitude and longitude, or neither.")
        return cleaned_data

    def listing_data(self):
        """cleaned_data shaped for ListingService.create/update."""
        data = {name: self.cleaned_data.get(name) for name in self._meta.fields}
        data["features"] = split_list(self.cleaned_data.get("features_text"))
        if self.instance.pk:
            # Coordinates left untouched so a changed address re-geocodes
            for name in ("lat", "lng"):
                if name not in self.changed_data:
                    data.pop(name)
        return data


class ListingStatusForm(forms.Form):
    status = forms.ChoiceField(choices=STATUS_CHOICES)


class ListingImportForm(forms.Form):
    file = forms.FileField(label="CSV file")

    def clean_file(self):
        uploaded = self.cleaned_data["file"]
        if not uploaded.name.lower().endswith(".csv"):
            raise forms.ValidationError("File must be a CSV file.")
        return uploaded
