"""
JSON API.

Views parse and validate the request, call one service function and
serialize the result. Errors are ServiceError subclasses, rendered by
ApiErrorMiddleware.
"""

import logging
from dataclasses import asdict

from django.contrib.auth import get_user_model
from django.forms.models import model_to_dict
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from accounts.decorators import token_optional, token_required
from accounts.forms import DocumentsVerificationForm, ProfileForm, UserStatusForm

from . import pricing
from .api import json_body, ok, paginated, validated
from .forms import (
    CarrierSearchForm,
    InvoiceIssueForm,
    LoadFilterForm,
    LoadForm,
    LocationPingForm,
    OfferForm,
    PaymentForm,
    PriceQuoteForm,
    RatingForm,
    RatingUpdateForm,
    TripCancelForm,
    TripCompleteForm,
    TripStartForm,
    VehicleForm,
)
from .serializers import (
    carrier_match_to_dict,
    given_rating_to_dict,
    invoice_to_dict,
    load_to_dict,
    location_to_dict,
    offer_to_dict,
    rating_to_dict,
    trip_to_dict,
    user_to_dict,
    vehicle_to_dict,
)
from .services import (
    invoices,
    loads,
    matching,
    offers,
    ratings,
    trips,
    users,
    vehicles,
)
from .services.exceptions import NotFound
from .services.providers import (
    get_document_generator,
    get_geocoder,
    get_payment_gateway,
)

logger = logging.getLogger(__name__)

SHIPPER = "shipper"
CARRIER = "carrier"
ADMIN = "admin"


# LOADS


@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_optional
def load_collection(request):
    if request.method == "GET":
        filters = validated(LoadFilterForm(request.GET))
        return paginated(request, loads.load_board(filters), load_to_dict, "loads")
    return create_load(request)


@token_required(SHIPPER)
def create_load(request):
    data = validated(LoadForm(json_body(request)))
    load = loads.create_load(actor=request.user, data=data, geocoder=get_geocoder())
    return ok(load_to_dict(load), status=201)


@require_GET
@token_required(SHIPPER)
def my_loads(request):
    queryset = loads.loads_of(request.user, status=request.GET.get("status"))
    return paginated(request, queryset, load_to_dict, "loads")


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@token_optional
def load_detail(request, load_id):
    if request.method == "GET":
        actor = request.user if request.user.is_authenticated else None
        return ok(load_to_dict(loads.visible_load(actor=actor, pk=load_id)))
    return _modify_load(request, load_id)


@token_required(SHIPPER)
def _modify_load(request, load_id):
    load = loads.get_load(load_id)
    if request.method == "DELETE":
        loads.delete_load(actor=request.user, load=load)
        return ok({"deleted": True})

    # PUT is a partial update: unspecified fields keep their current value
    current = model_to_dict(load, fields=LoadForm.Meta.fields)
    data = validated(LoadForm({**current, **json_body(request)}))
    load = loads.update_load(actor=request.user, load=load, data=data)
    return ok(load_to_dict(load))


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required(SHIPPER)
def publish_load(request, load_id):
    load = loads.publish_load(actor=request.user, load=loads.get_load(load_id))
    return ok(load_to_dict(load))


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required()
def cancel_load(request, load_id):
    load = loads.cancel_load(actor=request.user, load=loads.get_load(load_id))
    return ok(load_to_dict(load))


@require_GET
@token_required(SHIPPER)
def load_offers(request, load_id):
    queryset = offers.offers_for_load(actor=request.user, load=loads.get_load(load_id))
    return paginated(request, queryset, offer_to_dict, "offers")


# PRICING


@csrf_exempt
@require_http_methods(["POST"])
def price_quote(request):
    data = validated(PriceQuoteForm(json_body(request)))
    price = pricing.compute_price(
        data["distance_km"],
        data["weight_kg"],
        data.get("load_type"),
        data["origin_country"],
        data["destination_country"],
        pricing.RequirementFlags(
            insurance=data["requires_insurance"],
            cmr=data["requires_cmr"],
            adr=data["requires_adr"],
        ),
    )
    vat_country = data.get("vat_country") or data["origin_country"]
    payload = {
        "price": price,
        "range": asdict(pricing.suggested_price_range(price)),
        "breakdown": asdict(pricing.price_breakdown(price, vat_country=vat_country)),
    }
    if data.get("vehicle_type"):
        payload["operational_cost"] = asdict(
            pricing.estimate_operational_cost(data["distance_km"], data["vehicle_type"])
        )
    return ok(payload)


# VEHICLES


@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required(CARRIER)
def vehicle_collection(request):
    if request.method == "GET":
        return ok(
            {"vehicles": [vehicle_to_dict(v) for v in vehicles.vehicles_of(request.user)]}
        )
    data = validated(VehicleForm(json_body(request)))
    vehicle = vehicles.register_vehicle(actor=request.user, data=data)
    return ok(vehicle_to_dict(vehicle), status=201)


# OFFERS


@csrf_exempt
@require_http_methods(["POST"])
@token_required(CARRIER)
def create_offer(request):
    data = validated(OfferForm(json_body(request)))
    load = loads.get_load(data["load_id"])
    offer = offers.create_offer(actor=request.user, load=load, data=data)
    return ok(offer_to_dict(offer), status=201)


@require_GET
@token_required(CARRIER)
def my_offers(request):
    queryset = offers.offers_of(request.user, status=request.GET.get("status"))
    return paginated(
        request,
        queryset,
        lambda offer: offer_to_dict(offer, include_load=True),
        "offers",
    )


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required(SHIPPER)
def accept_offer(request, offer_id):
    result = offers.accept_offer(actor=request.user, offer=offers.get_offer(offer_id))
    return ok(
        {
            "offer": offer_to_dict(result.offer),
            "load": load_to_dict(result.load),
            "trip": trip_to_dict(result.trip) if result.trip else None,
            "rejected_offers": result.rejected_count,
        }
    )


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required(SHIPPER)
def reject_offer(request, offer_id):
    offer = offers.reject_offer(actor=request.user, offer=offers.get_offer(offer_id))
    return ok(offer_to_dict(offer))


@csrf_exempt
@require_http_methods(["DELETE"])
@token_required(CARRIER)
def cancel_offer(request, offer_id):
    offer = offers.cancel_offer(actor=request.user, offer=offers.get_offer(offer_id))
    return ok(offer_to_dict(offer))


# TRIPS


@require_GET
@token_required()
def trip_collection(request):
    queryset = trips.trips_for(request.user, status=request.GET.get("status"))
    return paginated(request, queryset, trip_to_dict, "trips")


@require_GET
@token_required()
def trip_detail(request, trip_id):
    trip = trips.visible_trip(actor=request.user, pk=trip_id)
    return ok(trip_to_dict(trip, locations=trips.recent_locations(trip)))


@require_GET
@token_required()
def trip_locations(request, trip_id):
    trip = trips.visible_trip(actor=request.user, pk=trip_id)
    return paginated(
        request,
        trip.locations.order_by("-recorded_at", "-id"),
        location_to_dict,
        "locations",
    )


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required(CARRIER)
def start_trip(request, trip_id):
    form = TripStartForm(json_body(request))
    data = validated(form)
    trip = trips.start_trip(
        actor=request.user,
        trip=trips.get_trip(trip_id),
        checklist=data.get("checklist"),
        position=form.position(),
    )
    return ok(trip_to_dict(trip))


@csrf_exempt
@require_http_methods(["POST"])
@token_required(CARRIER)
def record_location(request, trip_id):
    form = LocationPingForm(json_body(request))
    validated(form)
    location = trips.record_location(
        actor=request.user, trip=trips.get_trip(trip_id), ping=form.to_ping()
    )
    return ok(location_to_dict(location), status=201)


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required(CARRIER)
def complete_trip(request, trip_id):
    form = TripCompleteForm(json_body(request))
    data = validated(form)
    trip = trips.complete_trip(
        actor=request.user,
        trip=trips.get_trip(trip_id),
        proof=form.proof(),
        checklist=data.get("checklist"),
        position=form.position(),
    )
    return ok(trip_to_dict(trip))


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required()
def cancel_trip(request, trip_id):
    data = validated(TripCancelForm(json_body(request)))
    trip = trips.cancel_trip(
        actor=request.user, trip=trips.get_trip(trip_id), reason=data["reason"]
    )
    return ok(trip_to_dict(trip))


# INVOICES


@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required()
def invoice_collection(request):
    if request.method == "GET":
        queryset = invoices.invoices_for(request.user, status=request.GET.get("status"))
        return paginated(request, queryset, invoice_to_dict, "invoices")

    data = validated(InvoiceIssueForm(json_body(request)))
    invoice = invoices.issue_invoice(
        actor=request.user,
        load=loads.get_load(data["load_id"]),
        due_days=data.get("due_days"),
    )
    return ok(invoice_to_dict(invoice), status=201)


@require_GET
@token_required()
def invoice_stats(request):
    return ok(invoices.invoice_stats(request.user))


@require_GET
@token_required()
def invoice_detail(request, invoice_id):
    return ok(invoice_to_dict(invoices.visible_invoice(actor=request.user, pk=invoice_id)))


@csrf_exempt
@require_http_methods(["POST"])
@token_required()
def pay_invoice(request, invoice_id):
    data = validated(PaymentForm(json_body(request)))
    invoice = invoices.pay_invoice(
        actor=request.user,
        invoice=invoices.visible_invoice(actor=request.user, pk=invoice_id),
        gateway=get_payment_gateway(),
        method=data["payment_method"],
        token=data["payment_token"],
    )
    return ok(invoice_to_dict(invoice))


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@token_required()
def cancel_invoice(request, invoice_id):
    invoice = invoices.cancel_invoice(
        actor=request.user, invoice=invoices.get_invoice(invoice_id)
    )
    return ok(invoice_to_dict(invoice))


@require_GET
@token_required()
def invoice_document(request, invoice_id):
    invoice = invoices.visible_invoice(actor=request.user, pk=invoice_id)
    url = invoices.render_document(invoice=invoice, generator=get_document_generator())
    return ok({"document_url": url})


# RATINGS


@csrf_exempt
@require_http_methods(["POST"])
@token_required()
def create_rating(request):
    data = validated(RatingForm(json_body(request)))
    User = get_user_model()
    to_user = User.objects.filter(pk=data["to_user_id"], is_active=True).first()
    if to_user is None:
        raise NotFound("User not found.")
    load = loads.get_load(data["load_id"]) if data.get("load_id") else None
    rating = ratings.create_rating(
        actor=request.user,
        to_user=to_user,
        load=load,
        score=data["score"],
        comment=data.get("comment"),
    )
    return ok(rating_to_dict(rating), status=201)


@csrf_exempt
@require_http_methods(["PUT", "DELETE"])
@token_required()
def rating_detail(request, rating_id):
    rating = ratings.get_rating(rating_id)
    if request.method == "DELETE":
        ratings.delete_rating(actor=request.user, rating=rating)
        return ok({"deleted": True})

    body = json_body(request)
    data = validated(RatingUpdateForm(body))
    rating = ratings.update_rating(
        actor=request.user,
        rating=rating,
        score=data.get("score"),
        comment=data["comment"] if "comment" in body else None,
    )
    return ok(rating_to_dict(rating))


@require_GET
def user_ratings(request, user_id):
    User = get_user_model()
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFound("User not found.")
    return paginated(
        request, ratings.ratings_for_user(user_id), rating_to_dict, "ratings"
    )


@require_GET
def user_profile(request, user_id):
    User = get_user_model()
    user = User.objects.filter(pk=user_id, is_active=True).first()
    if user is None:
        raise NotFound("User not found.")
    return ok(user_to_dict(user))



@require_GET
@token_required()
def my_given_ratings(request):
    return paginated(
        request,
        ratings.ratings_given_by(request.user.pk),
        given_rating_to_dict,
        "ratings",
    )


# USERS


@require_GET
@token_required()
def user_stats(request):
    return ok(users.user_stats(request.user))


@csrf_exempt
@require_http_methods(["PUT", "PATCH"])
@token_required()
def update_profile(request):
    # partial update, like loads
    current = model_to_dict(request.user, fields=ProfileForm.Meta.fields)
    data = validated(ProfileForm({**current, **json_body(request)}))
    user = users.update_profile(actor=request.user, data=data)
    return ok(user_to_dict(user, private=True))


@csrf_exempt
@require_http_methods(["PATCH"])
@token_required(ADMIN)
def user_status(request, user_id):
    data = validated(UserStatusForm(json_body(request)))
    user = users.update_user_status(
        actor=request.user, user=users.get_user(user_id), status=data["status"]
    )
    return ok(user_to_dict(user, private=True))


@csrf_exempt
@require_http_methods(["PATCH"])
@token_required(ADMIN)
def verify_user_documents(request, user_id):
    data = validated(DocumentsVerificationForm(json_body(request)))
    user = users.verify_documents(
        actor=request.user, user=users.get_user(user_id), verified=data["verified"]
    )
    return ok(user_to_dict(user, private=True))


# MATCHING


@csrf_exempt
@require_http_methods(["POST"])
@token_required()
def search_carriers(request):
    data = validated(CarrierSearchForm(json_body(request)))
    carriers = matching.search_carriers(
        vehicle_type=data.get("vehicle_type") or None,
        limit=data.get("limit") or matching.MAX_RESULTS,
    )
    return ok({"carriers": [carrier_match_to_dict(c) for c in carriers]})
