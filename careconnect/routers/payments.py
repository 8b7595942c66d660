# careconnect/routers/payments.py
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
import logging

from ..dependencies import get_lifecycle
from ..schemas.booking import BookingOut
from ..schemas.payment import PaymentConfirmed
from ..security import get_now
from ..services.lifecycle import BookingLifecycle
from ..utils import to_id
from ..webhook_security import verify_payment_signature

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/confirmed", response_model=BookingOut)
async def payment_confirmed(
    body: bytes = Depends(verify_payment_signature),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    now=Depends(get_now),
):
    """
    Webhook del colaborador de pagos: el pago de la reserva se ha completado.
    Aquí no se cobra nada; solo se reacciona a la señal (waiting_payment -> confirmed).
    """
    try:
        payload = PaymentConfirmed.model_validate_json(body)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    logger.info(f"Pago confirmado para la reserva {payload.booking_id} (txn {payload.transaction_id})")
    updated = await lifecycle.confirm_payment(payload.booking_id, now)
    d = to_id(updated)
    d.pop("slot_key", None)
    return d
