from django.contrib import admin

from .models import Invoice, Load, Location, Offer, Rating, Trip, Vehicle


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ("plate", "vehicle_type", "owner", "is_active", "is_available")
    list_filter = ("vehicle_type", "is_active", "is_available")
    search_fields = ("plate",)


@admin.register(Load)
class LoadAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "origin_country",
        "destination_country",
        "load_type",
        "status",
        "suggested_price",
        "final_price",
    )
    list_filter = ("status", "load_type", "origin_country", "destination_country")
    search_fields = ("title", "origin_city", "destination_city")
    # transitions only
    readonly_fields = ("status", "final_price", "published_at", "delivered_at", "cancelled_at")


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ("load", "carrier", "price", "status", "expires_at")
    list_filter = ("status",)
    readonly_fields = ("status", "accepted_at", "rejected_at", "cancelled_at")


@admin.register(Trip)
class TripAdmin(admin.ModelAdmin):
    list_display = ("load", "carrier", "vehicle", "status", "last_location_at")
    list_filter = ("status",)
    readonly_fields = ("status", "completed_at", "cancelled_at")


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("trip", "lat", "lng", "recorded_at")

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("invoice_number", "issuer", "recipient", "total", "status", "due_date")
    list_filter = ("status",)
    search_fields = ("invoice_number",)
    readonly_fields = ("subtotal", "vat_rate", "vat_amount", "platform_fee", "total")


admin.site.register(Rating)
