from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ...api import deps
from ...config import Settings
from ...core.errors import unwrap
from ...db.session import get_db
from ...db import models, schemas
from ...services import checkout_service
from ...services.payments import BasePaymentGateway

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/sessions", response_model=schemas.CheckoutSession, status_code=201)
def create_checkout_session(
    payload: schemas.CheckoutRequest,
    db: Session = Depends(get_db),
    gateway: BasePaymentGateway = Depends(deps.get_gateway),
    settings: Settings = Depends(deps.get_app_settings),
    caller: models.User = Depends(deps.get_current_user),
):
    result = checkout_service.create_checkout(db, gateway, settings, caller, payload)
    return unwrap(result)
