"""Payments router - Checkout, gateway callbacks and status checks"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import FRONTEND_URL, Settings, get_settings
from ...database import get_db
from ...models import User
from ...tasks import TaskScheduler, get_task_scheduler
from .gateways.esewa import EsewaGateway
from .gateways.stripe_gateway import StripeGateway
from .reconciliation import PaymentReconciliationService
from .schemas import CheckoutResponse, EsewaCallback, PaymentChannel, ReconciliationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def build_gateway(channel: PaymentChannel, settings: Settings):
    if channel == PaymentChannel.ESEWA:
        return EsewaGateway(settings)
    return StripeGateway(settings)


class ReconciliationFactory:
    """Builds a reconciliation service for a channel within the request's session"""

    def __init__(self, db: Session, scheduler: TaskScheduler, settings: Settings):
        self.db = db
        self.scheduler = scheduler
        self.settings = settings

    def __call__(self, channel: PaymentChannel) -> PaymentReconciliationService:
        gateway = build_gateway(channel, self.settings)
        return PaymentReconciliationService(self.db, gateway, self.scheduler, self.settings)


def get_reconciliation_factory(
    db: Session = Depends(get_db),
    scheduler: TaskScheduler = Depends(get_task_scheduler),
    settings: Settings = Depends(get_settings),
) -> ReconciliationFactory:
    """Dependency injection for per-channel reconciliation services"""
    return ReconciliationFactory(db, scheduler, settings)


@router.post("/{channel}/initiate/{appointment_id}", response_model=CheckoutResponse)
async def initiate_payment(
    channel: PaymentChannel,
    appointment_id: str,
    user: User = Depends(get_current_user),
    services: ReconciliationFactory = Depends(get_reconciliation_factory),
):
    """Start a checkout and return the gateway URL for the payer"""
    url = await services(channel).initiate(user.id, appointment_id)
    return {"appointment_id": appointment_id, "checkout_url": url}


@router.get("/esewa/success")
async def esewa_success_redirect(
    data: str = Query(...),
    services: ReconciliationFactory = Depends(get_reconciliation_factory),
):
    """eSewa redirects the payer here; verify then send them back to the app"""
    result = await services(PaymentChannel.ESEWA).verify({"data": data})
    return RedirectResponse(
        url=f"{FRONTEND_URL}/appointments/{result.appointment_id}?payment=success", status_code=302
    )


@router.post("/esewa/success", response_model=ReconciliationResponse)
async def esewa_success(
    body: EsewaCallback,
    services: ReconciliationFactory = Depends(get_reconciliation_factory),
):
    result = await services(PaymentChannel.ESEWA).verify({"data": body.data})
    return asdict(result)


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    services: ReconciliationFactory = Depends(get_reconciliation_factory),
):
    """Stripe webhook endpoint; the raw body is needed for signature verification"""
    body = await request.body()
    result = await services(PaymentChannel.STRIPE).verify({"body": body, "signature": stripe_signature})
    if result is None:
        return {"received": True}
    return {"received": True, **asdict(result)}


@router.get("/{channel}/status/{appointment_id}", response_model=ReconciliationResponse)
async def payment_status(
    channel: PaymentChannel,
    appointment_id: str,
    user: User = Depends(get_current_user),
    services: ReconciliationFactory = Depends(get_reconciliation_factory),
):
    result = await services(channel).poll(user.id, appointment_id)
    return asdict(result)
