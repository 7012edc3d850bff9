"""
eSewa gateway (NPR)

Checkout is a signed form POST; eSewa answers with a redirect to its hosted
payment page. On success it redirects the payer to our success URL with a
base64 JSON `data` query parameter, and the transaction can be re-checked via
the status endpoint.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from ....config import Settings
from ....errors import GatewayError, InvalidInputError
from ....models import Currency, PaymentMethod
from .base import CheckoutSession, GatewayOutcome, OutcomeStatus, to_minor_unit

logger = logging.getLogger(__name__)

REQUEST_SIGNED_FIELDS = "total_amount,transaction_uuid,product_code"

# eSewa status vocabulary
_STATUS_MAP = {
    "COMPLETE": OutcomeStatus.SUCCESS,
    "PENDING": OutcomeStatus.PENDING,
    "AMBIGUOUS": OutcomeStatus.PENDING,
    "FULL_REFUND": OutcomeStatus.FAILED,
    "PARTIAL_REFUND": OutcomeStatus.FAILED,
    "NOT_FOUND": OutcomeStatus.PENDING,  # payer has not reached eSewa yet
    "CANCELED": OutcomeStatus.FAILED,
}


def sign(message: str, secret: str) -> str:
    """HMAC-SHA256 over `message`, base64 encoded"""
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def format_amount(amount: Decimal) -> str:
    # eSewa echoes amounts like "2400.0"; send the plain two-place form
    return str(to_minor_unit(amount))


class EsewaGateway:
    method = PaymentMethod.ESEWA
    currency = Currency.NPR

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    def _client(self) -> httpx.AsyncClient:
        return self._http_client or httpx.AsyncClient(timeout=15.0)

    def _require_secret(self) -> str:
        if not self.settings.esewa_secret_key:
            raise GatewayError("eSewa is not configured")
        return self.settings.esewa_secret_key

    def form_fields(self, amount: Decimal, reference: str) -> dict:
        """The signed form eSewa expects for an ePay v2 checkout"""
        total = format_amount(amount)
        product_code = self.settings.esewa_merchant_code
        message = f"total_amount={total},transaction_uuid={reference},product_code={product_code}"
        return {
            "amount": total,
            "tax_amount": "0",
            "product_service_charge": "0",
            "product_delivery_charge": "0",
            "total_amount": total,
            "transaction_uuid": reference,
            "product_code": product_code,
            "success_url": self.settings.esewa_success_url,
            "failure_url": self.settings.esewa_failure_url,
            "signed_field_names": REQUEST_SIGNED_FIELDS,
            "signature": sign(message, self._require_secret()),
        }

    async def create_checkout(
        self, amount: Decimal, currency: Currency, reference: str, description: str
    ) -> CheckoutSession:
        fields = self.form_fields(amount, reference)
        logger.info(f"💳 eSewa checkout for {reference}: NPR {fields['total_amount']} ({description})")

        client = self._client()
        try:
            response = await client.post(
                self.settings.esewa_payment_url, data=fields, follow_redirects=False
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ eSewa checkout request failed: {e}")
            raise GatewayError("Could not reach eSewa") from e
        finally:
            if self._http_client is None:
                await client.aclose()

        # The hosted payment page is the redirect target
        url = response.headers.get("location")
        if response.is_redirect and url:
            return CheckoutSession(url=str(response.url.join(url)), session_id=reference)

        logger.error(f"❌ eSewa checkout returned {response.status_code} without a redirect")
        raise GatewayError("eSewa did not return a payment URL")

    def verify_callback(self, payload: dict) -> GatewayOutcome:
        """Decode the base64 `data` eSewa appends to the success redirect"""
        data = payload.get("data") if isinstance(payload, dict) else None
        if not data:
            raise InvalidInputError("Missing eSewa callback data")

        try:
            decoded = json.loads(base64.b64decode(data).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidInputError("Malformed eSewa callback data") from e
        if not isinstance(decoded, dict):
            raise InvalidInputError("Malformed eSewa callback data")

        self._check_response_signature(decoded)

        try:
            amount = Decimal(str(decoded["total_amount"]).replace(",", ""))
            reference = decoded["transaction_uuid"]
        except (KeyError, InvalidOperation) as e:
            raise InvalidInputError("Incomplete eSewa callback data") from e
        if not reference or not isinstance(reference, str):
            raise InvalidInputError("eSewa callback has no transaction reference")

        return GatewayOutcome(
            reference=reference,
            status=_STATUS_MAP.get(str(decoded.get("status", "")).upper(), OutcomeStatus.FAILED),
            amount=amount,
            currency=Currency.NPR,
            transaction_code=decoded.get("transaction_code"),
        )

    def _check_response_signature(self, decoded: dict) -> None:
        signed_fields = decoded.get("signed_field_names")
        signature = decoded.get("signature")
        if not isinstance(signed_fields, str) or not isinstance(signature, str) or not signed_fields:
            raise InvalidInputError("Unsigned eSewa callback")

        message = ",".join(f"{name}={decoded.get(name, '')}" for name in signed_fields.split(","))
        expected = sign(message, self._require_secret())
        if not hmac.compare_digest(expected, signature):
            logger.warning(f"⚠️ eSewa callback signature mismatch for {decoded.get('transaction_uuid')}")
            raise InvalidInputError("Invalid eSewa callback signature")

    async def poll_status(
        self, reference: str, amount: Decimal, session_id: Optional[str] = None
    ) -> GatewayOutcome:
        params = {
            "product_code": self.settings.esewa_merchant_code,
            "total_amount": format_amount(amount),
            "transaction_uuid": reference,
        }
        client = self._client()
        try:
            response = await client.get(self.settings.esewa_status_url, params=params)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ eSewa status check failed for {reference}: {e}")
            raise GatewayError("Could not check eSewa transaction status") from e
        finally:
            if self._http_client is None:
                await client.aclose()

        if not isinstance(body, dict):
            logger.error(f"❌ eSewa status check for {reference} returned {type(body).__name__}")
            raise GatewayError("Unexpected eSewa status response")

        logger.info(f"🔍 eSewa status for {reference}: {body.get('status')}")
        total = body.get("total_amount")
        try:
            amount = Decimal(str(total).replace(",", "")) if total is not None else None
        except InvalidOperation as e:
            logger.error(f"❌ eSewa status for {reference} has a malformed amount: {total!r}")
            raise GatewayError("Unexpected eSewa status response") from e

        return GatewayOutcome(
            reference=body.get("transaction_uuid") or reference,
            status=_STATUS_MAP.get(str(body.get("status", "")).upper(), OutcomeStatus.PENDING),
            amount=amount,
            currency=Currency.NPR,
            transaction_code=body.get("ref_id"),
        )
