from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from .forms import LoadFilterForm, LoadForm, OfferForm
from .models import Invoice, Load, Offer, Trip
from .policies.load_actions import actions_for
from .policies.roles import can_manage_load, is_admin, is_carrier
from .services import loads, offers, vehicles
from .services.exceptions import ServiceError
from .services.providers import get_geocoder


@login_required
def dashboard(request):
    """Decide dashboard based on user role"""

    user = request.user

    if is_carrier(user):
        my_offers = Offer.objects.filter(carrier=user).select_related("load")
        my_trips = Trip.objects.filter(carrier=user).select_related("load")
        context = {
            "dashboard_template": "marketplace/_carrier_dashboard.html",
            "pending_offers_count": my_offers.filter(status=Offer.Status.PENDING).count(),
            "active_trips_count": my_trips.filter(
                status__in=Trip.ACTIVE_STATUSES
            ).count(),
            "open_loads_count": Load.objects.filter(
                status=Load.Status.PUBLISHED
            ).count(),
            "recent_offers": my_offers.order_by("-created_at")[:10],
            "active_trips": my_trips.filter(status__in=Trip.ACTIVE_STATUSES)[:10],
        }
    else:
        my_loads = Load.objects.all() if is_admin(user) else loads.loads_of(user)
        context = {
            "dashboard_template": "marketplace/_shipper_dashboard.html",
            "draft_count": my_loads.filter(status=Load.Status.DRAFT).count(),
            "published_count": my_loads.filter(status=Load.Status.PUBLISHED).count(),
            "in_transit_count": my_loads.filter(status=Load.Status.IN_TRANSIT).count(),
            "unpaid_invoices_count": Invoice.objects.filter(
                recipient=user, status__in=Invoice.PAYABLE_STATUSES
            ).count(),
            "recent_loads": my_loads.order_by("-created_at")[:10],
        }

    return render(request, "marketplace/dashboard.html", context)


@login_required
def loads_list(request):
    filter_form = LoadFilterForm(request.GET or None)
    filters = filter_form.cleaned_data if filter_form.is_valid() else {}
    return render(
        request,
        "marketplace/loads_list.html",
        {"loads": loads.load_board(filters)[:100], "filter_form": filter_form},
    )


@login_required
def load_detail(request, load_id):
    try:
        load = loads.visible_load(actor=request.user, pk=load_id)
    except ServiceError as e:
        messages.error(request, str(e))
        return redirect("loads_list")

    offer_form = OfferForm(initial={"load_id": load.pk})
    offer_form.fields["vehicle"].queryset = vehicles.vehicles_of(request.user)
    context = {
        "load": load,
        "actions": actions_for(request.user, load),
        "offer_form": offer_form,
    }
    context["show_offers"] = can_manage_load(request.user, load)
    if context["show_offers"]:
        context["offers"] = load.offers.select_related("carrier").order_by(
            "price", "created_at"
        )
    return render(request, "marketplace/load_detail.html", context)


@login_required
def create_load(request):
    if request.method == "POST":
        form = LoadForm(request.POST)
        if form.is_valid():
            try:
                load = loads.create_load(
                    actor=request.user,
                    data=form.cleaned_data,
                    geocoder=get_geocoder(),
                )
            except ServiceError as e:
                messages.error(request, str(e))
            else:
                messages.success(request, "Load saved as draft.")
                return redirect("load_detail", load_id=load.pk)
    else:
        form = LoadForm()

    return render(request, "marketplace/create_load.html", {"form": form})


@login_required
@require_POST
def change_status(request, load_id, action):
    """
    Run a load action from the detail page and redirect back.

    Business rules live in the services; this view only maps the action
    name and turns ServiceError into a flash message.
    """
    try:
        load = loads.get_load(load_id)
        if action == "publish":
            loads.publish_load(actor=request.user, load=load)
            messages.success(request, "Load published.")
        elif action == "cancel":
            loads.cancel_load(actor=request.user, load=load)
            messages.success(request, "Load cancelled.")
        else:
            messages.error(request, f"Unknown action '{action}'.")
    except ServiceError as e:
        messages.error(request, str(e))

    return redirect("load_detail", load_id=load_id)


@login_required
@require_POST
def make_offer(request, load_id):
    form = OfferForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Please check the offer details.")
        return redirect("load_detail", load_id=load_id)

    try:
        offers.create_offer(
            actor=request.user, load=loads.get_load(load_id), data=form.cleaned_data
        )
    except ServiceError as e:
        messages.error(request, str(e))
    else:
        messages.success(request, "Offer sent.")
    return redirect("load_detail", load_id=load_id)


@login_required
@require_POST
def decide_offer(request, offer_id, decision):
    try:
        offer = offers.get_offer(offer_id)
        if decision == "accept":
            result = offers.accept_offer(actor=request.user, offer=offer)
            if result.trip is None:
                messages.warning(
                    request, "Offer accepted, but the carrier has no free vehicle yet."
                )
            else:
                messages.success(request, "Offer accepted. Trip scheduled.")
        elif decision == "reject":
            offers.reject_offer(actor=request.user, offer=offer)
            messages.success(request, "Offer rejected.")
        else:
            messages.error(request, f"Unknown decision '{decision}'.")
            return redirect("loads_list")
    except ServiceError as e:
        messages.error(request, str(e))
        return redirect("loads_list")

    return redirect("load_detail", load_id=offer.load_id)
