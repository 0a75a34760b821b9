"""
URL routing for the marketplace app.

/api/...   JSON API (bearer token), no trailing slashes
/...       server-rendered pages (session login)
"""

from django.urls import path

from . import api_views as api
from . import views

api_urlpatterns = [
    # loads
    path("api/loads", api.load_collection, name="api_loads"),
    path("api/loads/mine", api.my_loads, name="api_my_loads"),
    path("api/loads/<int:load_id>", api.load_detail, name="api_load_detail"),
    path("api/loads/<int:load_id>/publish", api.publish_load, name="api_publish_load"),
    path("api/loads/<int:load_id>/cancel", api.cancel_load, name="api_cancel_load"),
    path("api/loads/<int:load_id>/offers", api.load_offers, name="api_load_offers"),
    # pricing
    path("api/pricing/quote", api.price_quote, name="api_price_quote"),
    # vehicles
    path("api/vehicles", api.vehicle_collection, name="api_vehicles"),
    # offers
    path("api/offers", api.create_offer, name="api_create_offer"),
    path("api/offers/mine", api.my_offers, name="api_my_offers"),
    path("api/offers/<int:offer_id>", api.cancel_offer, name="api_cancel_offer"),
    path("api/offers/<int:offer_id>/accept", api.accept_offer, name="api_accept_offer"),
    path("api/offers/<int:offer_id>/reject", api.reject_offer, name="api_reject_offer"),
    # trips
    path("api/trips", api.trip_collection, name="api_trips"),
    path("api/trips/<int:trip_id>", api.trip_detail, name="api_trip_detail"),
    path(
        "api/trips/<int:trip_id>/locations",
        api.trip_locations,
        name="api_trip_locations",
    ),
    path("api/trips/<int:trip_id>/start", api.start_trip, name="api_start_trip"),
    path(
        "api/trips/<int:trip_id>/location",
        api.record_location,
        name="api_record_location",
    ),
    path("api/trips/<int:trip_id>/complete", api.complete_trip, name="api_complete_trip"),
    path("api/trips/<int:trip_id>/cancel", api.cancel_trip, name="api_cancel_trip"),
    # invoices
    path("api/invoices", api.invoice_collection, name="api_invoices"),
    path("api/invoices/stats", api.invoice_stats, name="api_invoice_stats"),
    path("api/invoices/<int:invoice_id>", api.invoice_detail, name="api_invoice_detail"),
    path("api/invoices/<int:invoice_id>/pay", api.pay_invoice, name="api_pay_invoice"),
    path(
        "api/invoices/<int:invoice_id>/cancel",
        api.cancel_invoice,
        name="api_cancel_invoice",
    ),
    path(
        "api/invoices/<int:invoice_id>/document",
        api.invoice_document,
        name="api_invoice_document",
    ),
    # ratings and public profiles
    path("api/ratings", api.create_rating, name="api_create_rating"),
    path("api/ratings/<int:rating_id>", api.rating_detail, name="api_rating_detail"),
    path("api/ratings/user/<int:user_id>", api.user_ratings, name="api_user_ratings"),
    path("api/ratings/my/given", api.my_given_ratings, name="api_my_given_ratings"),
    path("api/users/stats", api.user_stats, name="api_user_stats"),
    path("api/users/profile", api.update_profile, name="api_update_profile"),
    path("api/users/<int:user_id>", api.user_profile, name="api_user_profile"),
    path("api/users/<int:user_id>/status", api.user_status, name="api_user_status"),
    path(
        "api/users/<int:user_id>/verify-documents",
        api.verify_user_documents,
        name="api_verify_user_documents",
    ),
    # matching
    path("api/matching/search", api.search_carriers, name="api_search_carriers"),
]

page_urlpatterns = [
    path("", views.dashboard, name="dashboard"),
    path("loads/", views.loads_list, name="loads_list"),
    path("loads/create/", views.create_load, name="create_load"),
    path("loads/<int:load_id>/", views.load_detail, name="load_detail"),
    path(
        "loads/<int:load_id>/status/<str:action>/",
        views.change_status,
        name="change_status",
    ),
    path("loads/<int:load_id>/offer/", views.make_offer, name="make_offer"),
    path(
        "offers/<int:offer_id>/<str:decision>/",
        views.decide_offer,
        name="decide_offer",
    ),
]

urlpatterns = api_urlpatterns + page_urlpatterns
