# src/infrastructure/payments/razorpay_gateway.py

import logging
from dataclasses import dataclass
from decimal import Decimal

import razorpay

from src.domain.exceptions import PaymentVerificationError

logger = logging.getLogger(__name__)

PROVIDER = "razorpay"


@dataclass(frozen=True)
class PaymentOrder:
    order_id: str
    amount_minor: int
    currency: str
    key_id: str


class PaymentGatewayNotConfiguredError(RuntimeError):
    """Raised when gateway keys are missing from the environment."""


class RazorpayGateway:
    """Thin wrapper over the Razorpay SDK for order creation and signature checks."""

    provider = PROVIDER

    def __init__(self, key_id: str | None, key_secret: str | None):
        self.key_id = key_id
        self.key_secret = key_secret

    def _client(self) -> razorpay.Client:
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayNotConfiguredError(
                "Razorpay keys not configured. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET."
            )
        return razorpay.Client(auth=(self.key_id, self.key_secret))

    def create_order(self, amount: Decimal, currency: str, receipt: str) -> PaymentOrder:
        amount_minor = int((amount * 100).to_integral_value())
        order = self._client().order.create(
            {
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
            }
        )
        return PaymentOrder(
            order_id=order.get("id"),
            amount_minor=amount_minor,
            currency=currency,
            key_id=self.key_id,
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> None:
        try:
            self._client().utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            )
        except razorpay.errors.SignatureVerificationError as exc:
            logger.warning(
                "Payment signature verification failed. order_id=%s payment_id=%s",
                order_id,
                payment_id,
            )
            raise PaymentVerificationError("Payment signature verification failed") from exc
