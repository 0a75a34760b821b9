"""
Email notifications.

Called from ``transaction.on_commit`` hooks, so a mail is only sent for
changes that were actually committed. Delivery problems are logged and never
propagate into the request that triggered them.
"""

import logging
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def notify(recipients, subject, message):
    recipients = [email for email in recipients if email]
    if not recipients:
        return 0
    try:
        return send_mail(
            subject,
            message,
            settings.DEFAULT_FROM_EMAIL,
            recipients,
            fail_silently=False,
        )
    except (SMTPException, OSError) as exc:
        logger.warning("Could not send %r to %s: %r", subject, recipients, exc)
        return 0


def notify_new_offer(offer):
    load = offer.load
    notify(
        [load.created_by.email],
        f"New offer on {load.title}",
        f"{offer.carrier.display_name} offered {offer.price} "
        f"{settings.MARKETPLACE_CURRENCY} for {load.origin_city} → {load.destination_city}.",
    )


def notify_offer_accepted(offer):
    load = offer.load
    notify(
        [offer.carrier.email],
        f"Your offer on {load.title} was accepted",
        f"The shipper accepted your offer of {offer.price} "
        f"{settings.MARKETPLACE_CURRENCY}. Pickup: {load.pickup_date:%Y-%m-%d}.",
    )


def notify_offers_rejected(load, carrier_emails):
    notify(
        list(carrier_emails),
        f"Offer not selected: {load.title}",
        "The shipper selected another offer for this load.",
    )


def notify_load_published(load, carrier_emails):
    notify(
        list(carrier_emails),
        f"New load: {load.origin_city} → {load.destination_city}",
        f"{load.title}, {load.weight_kg} kg, pickup {load.pickup_date:%Y-%m-%d}.",
    )


def notify_trip_completed(trip):
    load = trip.load
    notify(
        [load.created_by.email],
        f"Delivered: {load.title}",
        f"Your load was delivered at {trip.completed_at:%Y-%m-%d %H:%M}.",
    )


def notify_invoice_issued(invoice):
    notify(
        [invoice.recipient.email],
        f"Invoice {invoice.invoice_number}",
        f"Amount due: {invoice.total} {invoice.currency}, "
        f"due {invoice.due_date:%Y-%m-%d}.",
    )
