from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.files.storage import default_storage
from django.utils import timezone

from marketplace.models import Invoice, Load
from marketplace.services import invoices, loads, offers, trips
from marketplace.services.documents import InvoiceDocumentGenerator
from marketplace.services.exceptions import Conflict, Forbidden, PaymentDeclined
from marketplace.services.trips import ProofOfDelivery

pytestmark = pytest.mark.django_db


@pytest.fixture
def delivered_load(published_load_factory, offer_factory, carrier_with_vehicle, shipper):
    load = published_load_factory(created_by=shipper)
    offer = offer_factory(load=load, carrier=carrier_with_vehicle, price=Decimal("650.00"))
    trip = offers.accept_offer(actor=shipper, offer=offer).trip
    trips.start_trip(actor=carrier_with_vehicle, trip=trip)
    trips.complete_trip(actor=carrier_with_vehicle, trip=trip, proof=ProofOfDelivery())
    load.refresh_from_db()
    return load


@pytest.fixture
def invoice(delivered_load, carrier_with_vehicle):
    return invoices.issue_invoice(actor=carrier_with_vehicle, load=delivered_load)


def test_issue_invoice_from_final_price(invoice, delivered_load, carrier_with_vehicle, shipper):
    assert invoice.issuer == carrier_with_vehicle
    assert invoice.recipient == shipper
    assert invoice.status == Invoice.Status.ISSUED
    assert invoice.subtotal == Decimal("650.00")
    assert invoice.platform_fee == Decimal("65.00")
    assert invoice.vat_rate == Decimal("23")
    assert invoice.vat_amount == Decimal("149.50")
    assert invoice.total == Decimal("864.50")
    assert invoice.total == invoice.subtotal + invoice.vat_amount + invoice.platform_fee
    assert invoice.due_date - invoice.issue_date == timedelta(days=30)

    now = timezone.now()
    assert invoice.invoice_number == f"INV{now:%Y}{now:%m}0001"


def test_invoice_numbers_are_sequential(invoice, published_load_factory, offer_factory):
    load = published_load_factory()
    offer = offer_factory(load=load)
    offers.accept_offer(actor=load.created_by, offer=offer)

    second = invoices.issue_invoice(actor=offer.carrier, load=load)
    assert second.invoice_number[-4:] == "0002"
    assert second.invoice_number[:-4] == invoice.invoice_number[:-4]


def test_vat_country_falls_back_to_origin(published_load_factory, offer_factory, shipper_factory):
    shipper = shipper_factory(country="")
    load = published_load_factory(created_by=shipper, origin_country="ES")
    offer = offer_factory(load=load, price=Decimal("100.00"))
    offers.accept_offer(actor=shipper, offer=offer)

    invoice = invoices.issue_invoice(actor=offer.carrier, load=load)
    assert invoice.vat_rate == Decimal("21")


def test_load_is_invoiced_once(invoice, delivered_load, carrier_with_vehicle):
    with pytest.raises(Conflict):
        invoices.issue_invoice(actor=carrier_with_vehicle, load=delivered_load)


def test_load_without_accepted_offer(published_load_factory, carrier):
    with pytest.raises(Conflict):
        invoices.issue_invoice(actor=carrier, load=published_load_factory())


def test_cancelled_load_is_not_invoiced(published_load_factory, offer_factory):
    load = published_load_factory()
    offer = offer_factory(load=load)
    offers.accept_offer(actor=load.created_by, offer=offer)
    load.refresh_from_db()
    load.cancel()

    with pytest.raises(Conflict):
        invoices.issue_invoice(actor=offer.carrier, load=load)


def test_load_cancelled_after_read_is_not_invoiced(published_load_factory, offer_factory):
    load = published_load_factory()
    offer = offer_factory(load=load)
    offers.accept_offer(actor=load.created_by, offer=offer)
    stale = Load.objects.get(pk=load.pk)
    loads.cancel_load(actor=load.created_by, load=Load.objects.get(pk=load.pk))

    with pytest.raises(Conflict):
        invoices.issue_invoice(actor=offer.carrier, load=stale)
    assert not Invoice.objects.filter(load_id=load.pk).exists()


def test_only_winning_carrier_invoices(delivered_load, carrier_factory):
    with pytest.raises(Forbidden):
        invoices.issue_invoice(actor=carrier_factory(), load=delivered_load)


def test_pay_invoice(invoice, shipper, gateway):
    paid = invoices.pay_invoice(
        actor=shipper, invoice=invoice, gateway=gateway, method="card", token="pm_card_visa"
    )

    assert paid.status == Invoice.Status.PAID
    assert paid.paid_at is not None
    assert paid.payment_reference == "pi_1"
    charge = gateway.charges[0]
    assert charge["amount"] == Decimal("864.50")
    assert charge["currency"] == "EUR"
    assert charge["idempotency_key"] == f"invoice-{invoice.pk}"


def test_paying_twice_conflicts(invoice, shipper, gateway):
    invoices.pay_invoice(
        actor=shipper, invoice=invoice, gateway=gateway, method="card", token="pm_1"
    )
    with pytest.raises(Conflict):
        invoices.pay_invoice(
            actor=shipper, invoice=invoice, gateway=gateway, method="card", token="pm_1"
        )
    assert len(gateway.charges) == 1


def test_declined_payment_leaves_invoice_payable(invoice, shipper, declining_gateway):
    with pytest.raises(PaymentDeclined) as excinfo:
        invoices.pay_invoice(
            actor=shipper,
            invoice=invoice,
            gateway=declining_gateway,
            method="card",
            token="pm_card_chargeDeclined",
        )

    assert excinfo.value.details == {"status": "card_declined"}
    invoice.refresh_from_db()
    assert invoice.status == Invoice.Status.ISSUED
    assert invoice.paid_at is None


def test_only_recipient_pays(invoice, carrier_with_vehicle, gateway):
    with pytest.raises(Forbidden):
        invoices.pay_invoice(
            actor=carrier_with_vehicle,
            invoice=invoice,
            gateway=gateway,
            method="card",
            token="pm_1",
        )
    assert gateway.charges == []


def test_cancelled_invoice_cannot_be_paid(invoice, shipper, admin_factory, gateway):
    invoices.cancel_invoice(actor=admin_factory(), invoice=invoice)
    with pytest.raises(Conflict):
        invoices.pay_invoice(
            actor=shipper, invoice=invoice, gateway=gateway, method="card", token="pm_1"
        )


def test_only_admin_cancels(invoice, shipper):
    with pytest.raises(Forbidden):
        invoices.cancel_invoice(actor=shipper, invoice=invoice)


def test_overdue_invoices_stay_payable(invoice, shipper, gateway):
    Invoice.objects.filter(pk=invoice.pk).update(
        due_date=timezone.now() - timedelta(days=1)
    )
    assert invoices.mark_overdue_invoices() == 1
    invoice.refresh_from_db()
    assert invoice.status == Invoice.Status.OVERDUE

    paid = invoices.pay_invoice(
        actor=shipper, invoice=invoice, gateway=gateway, method="card", token="pm_1"
    )
    assert paid.status == Invoice.Status.PAID


def test_invoice_stats(invoice, shipper, carrier_with_vehicle):
    shipper_stats = invoices.invoice_stats(shipper)
    assert shipper_stats["received"] == {"count": 1, "total": Decimal("864.50")}
    assert shipper_stats["paid"]["count"] == 0

    carrier_stats = invoices.invoice_stats(carrier_with_vehicle)
    assert carrier_stats["issued"]["count"] == 1


def test_render_document(invoice):
    url = invoices.render_document(invoice=invoice, generator=InvoiceDocumentGenerator())

    invoice.refresh_from_db()
    assert invoice.document_url == url
    assert url.endswith(f"invoice-{invoice.invoice_number}.pdf")
    with default_storage.open(f"invoices/invoice-{invoice.invoice_number}.pdf") as document:
        assert document.read(5) == b"%PDF-"

    again = invoices.render_document(invoice=invoice, generator=InvoiceDocumentGenerator())
    assert again == url
