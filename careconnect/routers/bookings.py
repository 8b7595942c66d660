# careconnect/routers/bookings.py
from fastapi import APIRouter, Depends, HTTPException, status, Path, Query, Request
from typing import List, Optional
import logging

from ..config import get_settings
from ..dependencies import get_lifecycle, get_verification
from ..schemas.booking import BookingCreate, BookingOut, QuoteOut, ScanIn, ScanOut, TokenOut
from ..security import get_current_actor
from ..services.lifecycle import ActorContext, BookingLifecycle, BookingRequest, BookingStatus, scheduled_start
from ..services.verification import ScanOutcome, VerificationProtocol
from ..utils import to_id
from ..middleware.rate_limit import apply_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter()

# Mensaje genérico para quien escanea: no revela identidades ajenas
SCAN_REJECTED = "Código no válido para esta reserva"

def _to_out(doc: dict) -> dict:
    d = to_id(doc)
    d.pop("slot_key", None)
    if isinstance(d.get("status"), BookingStatus):
        d["status"] = d["status"].value
    return d

def _to_request(payload: BookingCreate) -> BookingRequest:
    return BookingRequest(
        provider_id=payload.provider_id,
        plan_id=payload.plan_id,
        dates=list(payload.dates),
        start_time=payload.start_time,
        duration_hours=payload.duration_hours,
        venue=payload.venue,
        location=payload.location,
        headcount=payload.headcount,
        notes=payload.notes,
    )

# ---------- Endpoints ----------

@router.get("/mine", response_model=List[BookingOut])
async def list_my_bookings(
    role: Optional[str] = Query(None, pattern="^(requester|provider)$"),
    status_filter: Optional[List[BookingStatus]] = Query(None, alias="status"),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    docs = await lifecycle.list_for_party(ctx, role=role, status=status_filter)
    return [_to_out(d) for d in docs]

@router.post("/quote", response_model=QuoteOut)
async def quote_booking(
    payload: BookingCreate,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    """Estimación del precio sin crear nada"""
    price = await lifecycle.quote(ctx, _to_request(payload))
    return {**price.to_dict(), "currency": get_settings().currency}

@router.post("", response_model=List[BookingOut], status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: Request,
    payload: BookingCreate,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    """Crea una reserva independiente por cada fecha seleccionada"""
    apply_rate_limit(request, "15/minute", "bookings")
    created = await lifecycle.create(ctx, _to_request(payload))
    return [_to_out(d) for d in created]

@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: str = Path(..., pattern=r"^[0-9a-fA-F]{24}$"),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    return _to_out(await lifecycle.get_for_party(ctx, booking_id))

@router.post("/{booking_id}/accept", response_model=BookingOut)
async def accept_booking(
    booking_id: str = Path(..., pattern=r"^[0-9a-fA-F]{24}$"),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    return _to_out(await lifecycle.accept(ctx, booking_id))

@router.post("/{booking_id}/decline", response_model=BookingOut)
async def decline_booking(
    booking_id: str = Path(..., pattern=r"^[0-9a-fA-F]{24}$"),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    return _to_out(await lifecycle.decline(ctx, booking_id))

@router.post("/{booking_id}/withdraw", response_model=BookingOut)
async def withdraw_booking(
    booking_id: str = Path(..., pattern=r"^[0-9a-fA-F]{24}$"),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    return _to_out(await lifecycle.withdraw(ctx, booking_id))

@router.post("/{booking_id}/complete", response_model=BookingOut)
async def complete_booking(
    booking_id: str = Path(..., pattern=r"^[0-9a-fA-F]{24}$"),
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
    ctx: ActorContext = Depends(get_current_actor),
):
    return _to_out(await lifecycle.complete(ctx, booking_id))

@router.get("/{booking_id}/token", response_model=TokenOut)
async def get_verification_token(
    booking_id: str = Path(..., pattern=r"^[0-9a-fA-F]{24}$"),
    verification: VerificationProtocol = Depends(get_verification),
    ctx: ActorContext = Depends(get_current_actor),
):
    """Texto del QR que muestra la cuidadora al llegar"""
    token = await verification.issue_token(ctx, booking_id)
    return {"booking_id": booking_id, "token": token}

@router.post("/{booking_id}/scan", response_model=ScanOut)
async def scan_verification_token(
    request: Request,
    body: ScanIn,
    booking_id: str = Path(..., pattern=r"^[0-9a-fA-F]{24}$"),
    verification: VerificationProtocol = Depends(get_verification),
    ctx: ActorContext = Depends(get_current_actor),
):
    """El solicitante escanea el QR de la cuidadora para iniciar la sesión"""
    apply_rate_limit(request, "30/minute", "scan")
    result = await verification.scan(ctx, booking_id, body.payload)

    if result.outcome == ScanOutcome.malformed:
        raise HTTPException(400, "Formato de código no reconocido")
    if result.outcome == ScanOutcome.early:
        starts_at = scheduled_start(result.booking, get_settings().tz)
        raise HTTPException(
            status_code=409,
            detail=f"Aún no es la hora de inicio ({starts_at.strftime('%Y-%m-%d %I:%M %p')})",
        )
    if not result.ok:
        raise HTTPException(403, SCAN_REJECTED)

    return {"outcome": result.outcome, "booking": _to_out(result.booking)}
