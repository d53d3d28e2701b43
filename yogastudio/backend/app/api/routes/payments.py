from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import unwrap
from ...db.session import get_db
from ...db import models, schemas
from ...services import webhook_service
from ...services.payments import BasePaymentGateway

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook", response_model=schemas.WebhookAck)
async def payments_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    gateway: BasePaymentGateway = Depends(deps.get_gateway),
):
    # the signature covers the exact bytes, so the body is never parsed first
    payload = await request.body()
    result = await run_in_threadpool(
        webhook_service.reconcile_webhook, db, gateway, payload, stripe_signature
    )
    outcome = unwrap(result)
    return schemas.WebhookAck(outcome=outcome.outcome, booking_id=outcome.booking_id)


@router.get("/events", response_model=list[schemas.PaymentEvent])
def list_payment_events(
    needs_attention: bool | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    query = db.query(models.PaymentEvent)
    if needs_attention is not None:
        query = query.filter(models.PaymentEvent.needs_attention.is_(needs_attention))
    return query.order_by(models.PaymentEvent.created_at.desc(), models.PaymentEvent.id.desc()).all()
