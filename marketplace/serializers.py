"""
Model → JSON-ready dict conversion for the API.

Decimals and datetimes are left as-is; JsonResponse's DjangoJSONEncoder
renders them as strings.
"""


def user_to_dict(user, private=False):
    data = {
        "id": user.pk,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "company_name": user.company_name,
        "role": user.role,
        "country": user.country,
        "rating_average": user.rating_average,
        "rating_count": user.rating_count,
        "completed_trips": user.completed_trips,
        "is_documents_verified": user.is_documents_verified,
    }
    if private:
        data.update(
            email=user.email,
            phone=user.phone,
            fiscal_number=user.fiscal_number,
            is_email_verified=user.is_email_verified,
            status=user.status,
            created_at=user.created_at,
        )
    return data


def vehicle_to_dict(vehicle):
    return {
        "id": vehicle.pk,
        "plate": vehicle.plate,
        "vehicle_type": vehicle.vehicle_type,
        "capacity_kg": vehicle.capacity_kg,
        "is_active": vehicle.is_active,
        "is_available": vehicle.is_available,
    }


def load_to_dict(load):
    return {
        "id": load.pk,
        "title": load.title,
        "description": load.description,
        "status": load.status,
        "created_by": user_to_dict(load.created_by),
        "origin": {
            "address": load.origin_address,
            "city": load.origin_city,
            "postal_code": load.origin_postal_code,
            "country": load.origin_country,
            "lat": load.origin_lat,
            "lng": load.origin_lng,
        },
        "destination": {
            "address": load.destination_address,
            "city": load.destination_city,
            "postal_code": load.destination_postal_code,
            "country": load.destination_country,
            "lat": load.destination_lat,
            "lng": load.destination_lng,
        },
        "distance_km": load.distance_km,
        "estimated_duration_minutes": load.estimated_duration_minutes,
        "load_type": load.load_type,
        "weight_kg": load.weight_kg,
        "volume_m3": load.volume_m3,
        "pallet_count": load.pallet_count,
        "pickup_date": load.pickup_date,
        "delivery_date": load.delivery_date,
        "suggested_price": load.suggested_price,
        "min_price": load.min_price,
        "max_price": load.max_price,
        "final_price": load.final_price,
        "requires_refrigeration": load.requires_refrigeration,
        "requires_insurance": load.requires_insurance,
        "requires_adr": load.requires_adr,
        "requires_cmr": load.requires_cmr,
        "required_vehicle_type": load.required_vehicle_type,
        "published_at": load.published_at,
        "expires_at": load.expires_at,
        "delivered_at": load.delivered_at,
        "cancelled_at": load.cancelled_at,
        "created_at": load.created_at,
    }


def offer_to_dict(offer, include_load=False):
    data = {
        "id": offer.pk,
        "load_id": offer.load_id,
        "carrier": user_to_dict(offer.carrier),
        "vehicle_id": offer.vehicle_id,
        "price": offer.price,
        "estimated_pickup_at": offer.estimated_pickup_at,
        "estimated_delivery_at": offer.estimated_delivery_at,
        "message": offer.message,
        "status": offer.status,
        "expires_at": offer.expires_at,
        "accepted_at": offer.accepted_at,
        "rejected_at": offer.rejected_at,
        "cancelled_at": offer.cancelled_at,
        "created_at": offer.created_at,
    }
    if include_load:
        data["load"] = load_to_dict(offer.load)
    return data


def location_to_dict(location):
    return {
        "id": location.pk,
        "lat": location.lat,
        "lng": location.lng,
        "speed": location.speed,
        "heading": location.heading,
        "accuracy": location.accuracy,
        "recorded_at": location.recorded_at,
    }


def trip_to_dict(trip, locations=None):
    data = {
        "id": trip.pk,
        "status": trip.status,
        "load": load_to_dict(trip.load),
        "offer_id": trip.offer_id,
        "carrier": user_to_dict(trip.carrier),
        "vehicle": vehicle_to_dict(trip.vehicle),
        "scheduled_pickup_at": trip.scheduled_pickup_at,
        "scheduled_delivery_at": trip.scheduled_delivery_at,
        "actual_pickup_at": trip.actual_pickup_at,
        "actual_delivery_at": trip.actual_delivery_at,
        "current_position": {
            "lat": trip.current_lat,
            "lng": trip.current_lng,
            "recorded_at": trip.last_location_at,
        },
        "pickup_checklist": trip.pickup_checklist,
        "delivery_checklist": trip.delivery_checklist,
        "proof_of_delivery": {
            "signature": trip.pod_signature,
            "photo": trip.pod_photo,
            "notes": trip.pod_notes,
        },
        "completed_at": trip.completed_at,
        "cancelled_at": trip.cancelled_at,
        "cancellation_reason": trip.cancellation_reason,
    }
    if locations is not None:
        data["locations"] = [location_to_dict(location) for location in locations]
    return data


def invoice_to_dict(invoice):
    return {
        "id": invoice.pk,
        "invoice_number": invoice.invoice_number,
        "load_id": invoice.load_id,
        "issuer": user_to_dict(invoice.issuer),
        "recipient": user_to_dict(invoice.recipient),
        "subtotal": invoice.subtotal,
        "vat_rate": invoice.vat_rate,
        "vat_amount": invoice.vat_amount,
        "platform_fee": invoice.platform_fee,
        "total": invoice.total,
        "currency": invoice.currency,
        "status": invoice.status,
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "paid_at": invoice.paid_at,
        "payment_method": invoice.payment_method,
        "payment_reference": invoice.payment_reference,
        "document_url": invoice.document_url,
    }


def rating_to_dict(rating):
    return {
        "id": rating.pk,
        "from_user": user_to_dict(rating.from_user),
        "to_user_id": rating.to_user_id,
        "load_id": rating.load_id,
        "score": rating.score,
        "comment": rating.comment,
        "created_at": rating.created_at,
    }

def given_rating_to_dict(rating):
    return {
        "id": rating.pk,
        "to_user": user_to_dict(rating.to_user),
        "load_id": rating.load_id,
        "score": rating.score,
        "comment": rating.comment,
        "created_at": rating.created_at,
    }


def carrier_match_to_dict(carrier):
    data = user_to_dict(carrier)
    data["vehicles"] = [vehicle_to_dict(v) for v in carrier.matching_vehicles]
    return data
