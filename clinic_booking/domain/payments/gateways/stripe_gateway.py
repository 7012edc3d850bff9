"""Stripe gateway (USD) - hosted checkout sessions and signed webhooks"""

import asyncio
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional

import stripe

from ....config import Settings
from ....errors import GatewayError, InvalidInputError
from ....models import Currency, PaymentMethod
from .base import CheckoutSession, GatewayOutcome, OutcomeStatus, to_minor_unit

logger = logging.getLogger(__name__)

# Webhook events that settle a checkout session
_EVENT_STATUS = {
    "checkout.session.async_payment_succeeded": OutcomeStatus.SUCCESS,
    "checkout.session.async_payment_failed": OutcomeStatus.FAILED,
    "checkout.session.expired": OutcomeStatus.FAILED,
}


def _session_outcome(session, status: Optional[OutcomeStatus] = None) -> GatewayOutcome:
    if status is None:
        if session.get("payment_status") in ("paid", "no_payment_required"):
            status = OutcomeStatus.SUCCESS
        elif session.get("status") == "expired":
            status = OutcomeStatus.FAILED
        else:
            status = OutcomeStatus.PENDING

    amount_total = session.get("amount_total")
    currency = (session.get("currency") or "").upper()
    payment_intent = session.get("payment_intent")
    if payment_intent is not None and not isinstance(payment_intent, str):
        payment_intent = payment_intent.get("id")

    return GatewayOutcome(
        reference=session.get("client_reference_id") or (session.get("metadata") or {}).get("reference"),
        status=status,
        amount=(Decimal(amount_total) / 100) if amount_total is not None else None,
        currency=Currency(currency) if currency in Currency.__members__ else None,
        transaction_code=payment_intent,
    )


class StripeGateway:
    method = PaymentMethod.STRIPE
    currency = Currency.USD

    def __init__(self, settings: Settings):
        self.settings = settings

    def _require_key(self) -> str:
        if not self.settings.stripe_secret_key:
            raise GatewayError("Stripe is not configured")
        return self.settings.stripe_secret_key

    async def create_checkout(
        self, amount: Decimal, currency: Currency, reference: str, description: str
    ) -> CheckoutSession:
        api_key = self._require_key()
        unit_amount = int(to_minor_unit(amount) * 100)
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": currency.value.lower(),
                            "unit_amount": unit_amount,
                            "product_data": {"name": description},
                        },
                        "quantity": 1,
                    }
                ],
                client_reference_id=reference,
                metadata={"reference": reference},
                success_url=self.settings.stripe_success_url,
                cancel_url=self.settings.stripe_cancel_url,
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe checkout creation failed for {reference}: {e}")
            raise GatewayError("Could not create Stripe checkout session") from e

        logger.info(f"💳 Stripe checkout session {session.id} for {reference}")
        return CheckoutSession(url=session.url, session_id=session.id)

    def verify_callback(self, payload: dict) -> Optional[GatewayOutcome]:
        """
        Verify a webhook delivery and map it to an outcome.

        `payload` carries the raw request body and the Stripe-Signature header.
        Returns None for event types that do not settle a checkout.
        """
        if not self.settings.stripe_webhook_secret:
            raise GatewayError("Stripe webhook secret is not configured")

        try:
            event = stripe.Webhook.construct_event(
                payload["body"], payload.get("signature") or "", self.settings.stripe_webhook_secret
            )
        except ValueError as e:
            raise InvalidInputError("Invalid Stripe webhook payload") from e
        except stripe.SignatureVerificationError as e:
            logger.warning("⚠️ Stripe webhook signature verification failed")
            raise InvalidInputError("Invalid Stripe webhook signature") from e

        event_type = event["type"]
        session = event["data"]["object"]
        logger.info(f"📥 Stripe webhook: {event_type}")

        if event_type == "checkout.session.completed":
            # Delayed payment methods complete the session before paying
            outcome = _session_outcome(session)
        elif event_type in _EVENT_STATUS:
            outcome = _session_outcome(session, _EVENT_STATUS[event_type])
        else:
            return None

        if not outcome.reference:
            logger.info(f"🔍 Stripe session {session.get('id')} was not created by this service, ignoring")
            return None
        return outcome

    async def poll_status(
        self, reference: str, amount: Decimal, session_id: Optional[str] = None
    ) -> GatewayOutcome:
        if not session_id:
            raise GatewayError("No Stripe session to check")
        api_key = self._require_key()
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.retrieve, session_id, api_key=api_key
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe session lookup failed for {session_id}: {e}")
            raise GatewayError("Could not check Stripe session status") from e

        outcome = _session_outcome(session)
        if not outcome.reference:
            outcome = replace(outcome, reference=reference)
        return outcome
