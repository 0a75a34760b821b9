import logging
from io import BytesIO

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.template.loader import render_to_string
from xhtml2pdf import pisa

from .exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class InvoiceDocumentGenerator:
    """
    Renders an invoice to PDF and stores it under ``invoices/``.

    The storage name only depends on the invoice number, so regenerating a
    document replaces the previous file.
    """

    template_name = "marketplace/invoice_document.html"

    def __init__(self, storage=None):
        self.storage = storage or default_storage

    def storage_name(self, invoice):
        return f"invoices/invoice-{invoice.invoice_number}.pdf"

    def render_pdf(self, invoice) -> bytes:
        html = render_to_string(self.template_name, {"invoice": invoice, "load": invoice.load})
        buffer = BytesIO()
        result = pisa.CreatePDF(html, dest=buffer, encoding="utf-8")
        if result.err:
            logger.error(
                "Invoice %s: PDF rendering failed with %d errors",
                invoice.invoice_number,
                result.err,
            )
            raise ExternalServiceError("Invoice document could not be rendered.")
        return buffer.getvalue()

    def generate(self, invoice) -> str:
        name = self.storage_name(invoice)
        pdf = self.render_pdf(invoice)
        if self.storage.exists(name):
            self.storage.delete(name)
        saved_name = self.storage.save(name, ContentFile(pdf))
        logger.info("Invoice document %s written to %s", invoice.invoice_number, saved_name)
        return self.storage.url(saved_name)
