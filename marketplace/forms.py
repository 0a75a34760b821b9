from django import forms
from django.utils import timezone

from marketplace.services.loads import EDITABLE_FIELDS
from marketplace.services.trips import LocationPing, ProofOfDelivery

from .models import Load, Vehicle

_DT_LOCAL_FMT = "%Y-%m-%dT%H:%M"


def _country_code(value):
    value = (value or "").strip().upper()
    if value and (len(value) != 2 or not value.isalpha()):
        raise forms.ValidationError("Use a two-letter ISO country code.")
    return value


class LoadForm(forms.ModelForm):
    """
    Create/edit a load. Used by the JSON API and the "post a load" page.

    Status, final price and owner are not form fields: they only change
    through transitions.
    """

    class Meta:
        model = Load
        fields = list(EDITABLE_FIELDS)
        widgets = {
            "description": forms.Textarea(attrs={"rows": 3}),
            "pickup_date": forms.DateTimeInput(
                attrs={"type": "datetime-local", "step": "60"}, format=_DT_LOCAL_FMT
            ),
            "delivery_date": forms.DateTimeInput(
                attrs={"type": "datetime-local", "step": "60"}, format=_DT_LOCAL_FMT
            ),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        placeholders = {
            "title": "e.g. 12 pallets of tiles",
            "origin_country": "PT",
            "destination_country": "ES",
            "weight_kg": "0",
            "distance_km": "Leave empty to calculate",
            "suggested_price": "Leave empty to calculate",
        }
        for name, field in self.fields.items():
            if name in placeholders:
                field.widget.attrs.setdefault("placeholder", placeholders[name])

        self.fields["load_type"].required = False

    def clean_load_type(self):
        return self.cleaned_data.get("load_type") or Load.LoadType.GENERAL

    def clean_origin_country(self):
        return _country_code(self.cleaned_data.get("origin_country"))

    def clean_destination_country(self):
        return _country_code(self.cleaned_data.get("destination_country"))

    def clean_weight_kg(self):
        weight = self.cleaned_data.get("weight_kg")
        if weight is not None and weight < 0:
            raise forms.ValidationError("Weight cannot be negative.")
        return weight

    def clean_distance_km(self):
        distance = self.cleaned_data.get("distance_km")
        if distance is not None and distance < 0:
            raise forms.ValidationError("Distance cannot be negative.")
        return distance

    def clean(self):
        cleaned = super().clean()
        pickup = cleaned.get("pickup_date")
        delivery = cleaned.get("delivery_date")
        if pickup and delivery and delivery < pickup:
            self.add_error("delivery_date", "Delivery cannot be before pickup.")

        min_price = cleaned.get("min_price")
        max_price = cleaned.get("max_price")
        if min_price is not None and max_price is not None and min_price > max_price:
            self.add_error("max_price", "Maximum price is below the minimum price.")
        return cleaned


class LoadFilterForm(forms.Form):
    origin_country = forms.CharField(required=False)
    destination_country = forms.CharField(required=False)
    load_type = forms.ChoiceField(
        choices=[("", "Any")] + list(Load.LoadType.choices), required=False
    )
    min_weight = forms.DecimalField(required=False, min_value=0)
    max_weight = forms.DecimalField(required=False, min_value=0)


class VehicleForm(forms.ModelForm):
    class Meta:
        model = Vehicle
        fields = ["plate", "vehicle_type", "capacity_kg"]


class OfferForm(forms.Form):
    load_id = forms.IntegerField(widget=forms.HiddenInput)
    vehicle = forms.ModelChoiceField(
        queryset=Vehicle.objects.filter(is_active=True), required=False
    )
    price = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    estimated_pickup_at = forms.DateTimeField(required=False)
    estimated_delivery_at = forms.DateTimeField(required=False)
    message = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # the JSON API sends vehicle_id
        if self.is_bound and "vehicle_id" in self.data and "vehicle" not in self.data:
            self.data = {**self.data, "vehicle": self.data["vehicle_id"]}

    def clean(self):
        cleaned = super().clean()
        pickup = cleaned.get("estimated_pickup_at")
        delivery = cleaned.get("estimated_delivery_at")
        if pickup and delivery and delivery < pickup:
            self.add_error("estimated_delivery_at", "Delivery cannot be before pickup.")
        return cleaned


class PositionForm(forms.Form):
    """Optional lat/lng pair; both or neither."""

    lat = forms.FloatField(required=False, min_value=-90, max_value=90)
    lng = forms.FloatField(required=False, min_value=-180, max_value=180)

    def clean(self):
        cleaned = super().clean()
        if (cleaned.get("lat") is None) != (cleaned.get("lng") is None):
            raise forms.ValidationError("Send both lat and lng, or neither.")
        return cleaned

    def position(self):
        if self.cleaned_data.get("lat") is None:
            return None
        return LocationPing(lat=self.cleaned_data["lat"], lng=self.cleaned_data["lng"])


class LocationPingForm(forms.Form):
    lat = forms.FloatField(min_value=-90, max_value=90)
    lng = forms.FloatField(min_value=-180, max_value=180)
    speed = forms.FloatField(required=False, min_value=0)
    heading = forms.FloatField(required=False, min_value=0, max_value=360)
    accuracy = forms.FloatField(required=False, min_value=0)
    recorded_at = forms.DateTimeField(required=False)

    def to_ping(self) -> LocationPing:
        data = self.cleaned_data
        return LocationPing(
            lat=data["lat"],
            lng=data["lng"],
            speed=data.get("speed"),
            heading=data.get("heading"),
            accuracy=data.get("accuracy"),
            recorded_at=data.get("recorded_at") or timezone.now(),
        )


class TripStartForm(PositionForm):
    checklist = forms.JSONField(required=False)


class TripCompleteForm(PositionForm):
    signature = forms.CharField(required=False)
    photo = forms.CharField(required=False, max_length=500)
    notes = forms.CharField(required=False)
    checklist = forms.JSONField(required=False)

    def proof(self) -> ProofOfDelivery:
        data = self.cleaned_data
        return ProofOfDelivery(
            signature=data.get("signature") or "",
            photo=data.get("photo") or "",
            notes=data.get("notes") or "",
        )


class TripCancelForm(forms.Form):
    reason = forms.CharField(required=False, max_length=1000)


class RatingForm(forms.Form):
    to_user_id = forms.IntegerField()
    load_id = forms.IntegerField(required=False)
    score = forms.IntegerField(min_value=1, max_value=5)
    comment = forms.CharField(required=False, max_length=2000)


class RatingUpdateForm(forms.Form):
    score = forms.IntegerField(required=False, min_value=1, max_value=5)
    comment = forms.CharField(required=False, max_length=2000)


class InvoiceIssueForm(forms.Form):
    load_id = forms.IntegerField()
    due_days = forms.IntegerField(required=False, min_value=1, max_value=365)


class PaymentForm(forms.Form):
    payment_method = forms.ChoiceField(
        choices=[("card", "Card"), ("sepa_debit", "SEPA Direct Debit")],
        required=False,
    )
    payment_token = forms.CharField(max_length=255)

    def clean_payment_method(self):
        return self.cleaned_data.get("payment_method") or "card"


class PriceQuoteForm(forms.Form):
    distance_km = forms.DecimalField()
    weight_kg = forms.DecimalField()
    load_type = forms.CharField(required=False)
    origin_country = forms.CharField(max_length=2)
    destination_country = forms.CharField(max_length=2)
    requires_insurance = forms.BooleanField(required=False)
    requires_cmr = forms.BooleanField(required=False)
    requires_adr = forms.BooleanField(required=False)
    vat_country = forms.CharField(required=False, max_length=2)
    vehicle_type = forms.ChoiceField(
        choices=[("", "-")] + list(Vehicle.VehicleType.choices), required=False
    )

    def clean_origin_country(self):
        return _country_code(self.cleaned_data.get("origin_country"))

    def clean_destination_country(self):
        return _country_code(self.cleaned_data.get("destination_country"))


class CarrierSearchForm(forms.Form):
    vehicle_type = forms.ChoiceField(
        choices=[("", "-")] + list(Vehicle.VehicleType.choices), required=False
    )
    limit = forms.IntegerField(required=False, min_value=1, max_value=20)
