"""
Card payments through Stripe PaymentIntents.

Charges are never retried here; the caller passes an idempotency key so a
client retry of the same invoice payment cannot charge twice.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

import stripe
from django.conf import settings

from .exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class ChargeResult:
    success: bool
    reference: str
    status: str
    message: str = ""


def to_minor_units(amount) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


def _declined(exc) -> ChargeResult:
    error = (exc.json_body or {}).get("error") or {}
    intent = error.get("payment_intent") or {}
    return ChargeResult(
        success=False,
        reference=intent.get("id", ""),
        status=error.get("decline_code") or exc.code or "declined",
        message=error.get("message") or "Card declined.",
    )


class StripeGateway:
    def __init__(self, secret_key=None):
        self.secret_key = settings.STRIPE_SECRET_KEY if secret_key is None else secret_key

    def charge(
        self,
        *,
        amount,
        currency,
        method,
        token,
        metadata=None,
        idempotency_key=None,
    ) -> ChargeResult:
        if not self.secret_key:
            raise ExternalServiceError("Payment gateway is not configured.")

        metadata = {key: str(value) for key, value in (metadata or {}).items()}
        params = {
            "amount": to_minor_units(amount),
            "currency": currency.lower(),
            "payment_method": token,
            "payment_method_types": [method],
            "confirm": True,
            "metadata": metadata,
        }
        if "invoice_number" in metadata:
            params["description"] = f"Invoice {metadata['invoice_number']}"

        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                idempotency_key=idempotency_key,
                **params,
            )
        except stripe.CardError as exc:
            return _declined(exc)
        except stripe.StripeError as exc:
            logger.error("stripe: charge failed: %r", exc)
            raise ExternalServiceError(
                getattr(exc, "user_message", None) or "Payment gateway error."
            )

        status = intent["status"]
        return ChargeResult(
            success=status == SUCCEEDED,
            reference=intent["id"],
            status=status,
            message="" if status == SUCCEEDED else f"Payment {status}.",
        )
