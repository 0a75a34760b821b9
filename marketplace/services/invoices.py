import logging
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from marketplace.models import Invoice, Load, Offer
from marketplace.policies.roles import is_admin
from marketplace.pricing import price_breakdown
from marketplace.services import notifications
from marketplace.services.exceptions import (
    Conflict,
    Forbidden,
    NotFound,
    PaymentDeclined,
)

logger = logging.getLogger(__name__)

NUMBER_ATTEMPTS = 3


def next_invoice_number(now=None) -> str:
    """``<prefix><YYYY><MM><seq:04>``, seq counting invoices issued this month."""
    now = now or timezone.now()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    count = Invoice.objects.filter(issue_date__gte=month_start).count()
    prefix = settings.MARKETPLACE_INVOICE_PREFIX
    return f"{prefix}{now:%Y}{now:%m}{count + 1:04d}"


def get_invoice(pk) -> Invoice:
    invoice = (
        Invoice.objects.select_related("load", "issuer", "recipient")
        .filter(pk=pk)
        .first()
    )
    if invoice is None:
        raise NotFound("Invoice not found.")
    return invoice


def visible_invoice(*, actor, pk) -> Invoice:
    invoice = get_invoice(pk)
    if not (
        is_admin(actor)
        or invoice.issuer_id == actor.pk
        or invoice.recipient_id == actor.pk
    ):
        raise Forbidden("You cannot see this invoice.")
    return invoice


def issue_invoice(*, actor, load, due_days=None) -> Invoice:
    """
    Invoice the shipper for a load on behalf of the carrier that won it.

    Amounts come from the pricing breakdown of ``final_price`` with the VAT
    rate of the shipper's country (the load's origin country when unknown).
    Guards and amounts are read from the locked load row, never from the
    caller's copy.
    """
    due_days = settings.MARKETPLACE_INVOICE_DUE_DAYS if due_days is None else due_days

    for attempt in range(1, NUMBER_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                locked = (
                    Load.objects.select_for_update()
                    .select_related("created_by")
                    .get(pk=load.pk)
                )
                if locked.status == Load.Status.CANCELLED:
                    raise Conflict("Cancelled loads cannot be invoiced.")
                accepted = locked.offers.filter(status=Offer.Status.ACCEPTED).first()
                if accepted is None or locked.final_price is None:
                    raise Conflict("Load has no accepted offer to invoice.")
                if accepted.carrier_id != actor.pk and not is_admin(actor):
                    raise Forbidden("Only the carrier of this load can invoice it.")
                if Invoice.objects.filter(load=locked).exists():
                    raise Conflict("This load has already been invoiced.")

                shipper = locked.created_by
                breakdown = price_breakdown(
                    locked.final_price,
                    vat_country=shipper.country or locked.origin_country,
                )
                now = timezone.now()
                invoice = Invoice.objects.create(
                    load=locked,
                    issuer_id=accepted.carrier_id,
                    recipient=shipper,
                    invoice_number=next_invoice_number(now),
                    subtotal=breakdown.subtotal,
                    vat_rate=breakdown.vat_rate,
                    vat_amount=breakdown.vat_amount,
                    platform_fee=breakdown.platform_fee,
                    total=breakdown.total,
                    currency=breakdown.currency,
                    issue_date=now,
                    due_date=now + timedelta(days=due_days),
                )
                transaction.on_commit(
                    lambda: notifications.notify_invoice_issued(invoice)
                )
        except IntegrityError:
            # lost the race for a sequence number; the load check runs again
            logger.warning(
                "Invoice number collision for load %s (attempt %d)", load.pk, attempt
            )
            continue
        logger.info("Invoice %s issued for load %s", invoice.invoice_number, load.pk)
        return invoice

    raise Conflict("Could not allocate an invoice number, try again.")


def pay_invoice(*, actor, invoice, gateway, method, token) -> Invoice:
    """
    Charge the recipient and mark the invoice PAID.

    The invoice row stays locked while the gateway is called, so a second
    payment attempt waits and then finds the invoice already paid. The
    idempotency key protects against a client retrying after a timeout.
    """
    if invoice.recipient_id != actor.pk and not is_admin(actor):
        raise Forbidden("Only the invoice recipient can pay it.")

    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if invoice.status == Invoice.Status.PAID:
            raise Conflict("Invoice is already paid.")
        if not invoice.is_payable:
            raise Conflict("Cancelled invoices cannot be paid.")

        result = gateway.charge(
            amount=invoice.total,
            currency=invoice.currency,
            method=method,
            token=token,
            metadata={
                "invoice_id": invoice.pk,
                "invoice_number": invoice.invoice_number,
                "load_id": invoice.load_id,
            },
            idempotency_key=f"invoice-{invoice.pk}",
        )
        if not result.success:
            logger.warning(
                "Payment for invoice %s declined: %s", invoice.invoice_number, result.status
            )
            raise PaymentDeclined(
                result.message or "Payment was declined.",
                details={"status": result.status},
            )
        invoice.mark_paid(method=method, reference=result.reference)

    logger.info("Invoice %s paid (%s)", invoice.invoice_number, result.reference)
    return invoice


def cancel_invoice(*, actor, invoice) -> Invoice:
    if not is_admin(actor):
        raise Forbidden("Only admins can cancel invoices.")

    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        invoice.cancel()

    return invoice


def mark_overdue_invoices(now=None) -> int:
    now = now or timezone.now()
    count = Invoice.objects.filter(
        status=Invoice.Status.ISSUED, due_date__lt=now
    ).update(status=Invoice.Status.OVERDUE, updated_at=now)
    if count:
        logger.info("Marked %d invoices overdue", count)
    return count


def render_document(*, invoice, generator) -> str:
    url = generator.generate(invoice)
    if invoice.document_url != url:
        invoice.document_url = url
        invoice.save(update_fields=["document_url", "updated_at"])
    return url


def invoices_for(actor, status=None):
    queryset = Invoice.objects.select_related("load", "issuer", "recipient")
    if not is_admin(actor):
        queryset = queryset.filter(Q(issuer=actor) | Q(recipient=actor))
    if status:
        queryset = queryset.filter(status=status)
    return queryset.order_by("-issue_date")


def _summary(queryset):
    totals = queryset.aggregate(count=Count("id"), total=Sum("total"))
    return {"count": totals["count"], "total": totals["total"] or 0}


def invoice_stats(actor) -> dict:
    received = Invoice.objects.filter(recipient=actor)
    return {
        "issued": _summary(Invoice.objects.filter(issuer=actor)),
        "received": _summary(received),
        "paid": _summary(received.filter(status=Invoice.Status.PAID)),
        "overdue": received.filter(status=Invoice.Status.OVERDUE).count(),
    }
