"""
Máquina de estados del ciclo de vida de una reserva.

    pending ──accept──▶ waiting_payment ──pago──▶ confirmed ──QR──▶ active ──▶ completed
       │
       └──decline / withdraw──▶ cancelled

`_transition` es el único camino que escribe `status`. Cada transición emite
exactamente un evento para el despacho de notificaciones; si el envío falla
la transición se mantiene.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple
import logging

from pymongo.errors import DuplicateKeyError

from ..config import Settings, get_settings
from ..store import Store, slot_key
from ..utils import format_clock_12h, parse_clock, parse_clock_12h, parse_iso_date
from . import notifications as events
from .availability import AvailabilityRule, fits, open_ranges
from .errors import (
    BookingNotFoundError,
    BookingPermissionError,
    BookingStateError,
    BookingValidationError,
)
from .notifications import LifecycleEvent, Notifier
from .pricing import PriceQuote, quote

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    pending = "pending"
    waiting_payment = "waiting_payment"
    confirmed = "confirmed"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class Venue(str, Enum):
    home = "home"        # en el domicilio del solicitante
    outside = "outside"  # donde indique la cuidadora


ALLOWED: Dict[BookingStatus, Set[BookingStatus]] = {
    BookingStatus.pending: {BookingStatus.waiting_payment, BookingStatus.cancelled},
    BookingStatus.waiting_payment: {BookingStatus.confirmed},
    BookingStatus.confirmed: {BookingStatus.active},
    BookingStatus.active: {BookingStatus.completed},
    BookingStatus.completed: set(),
    BookingStatus.cancelled: set(),
}

TERMINAL = {BookingStatus.completed, BookingStatus.cancelled}


@dataclass(frozen=True)
class ActorContext:
    """Quién actúa y cuándo. `now` debe llevar zona horaria."""
    actor_id: str
    now: datetime


@dataclass
class BookingRequest:
    provider_id: str
    plan_id: str
    dates: List[str]
    start_time: str
    duration_hours: int
    venue: Venue = Venue.outside
    location: str = ""
    headcount: int = 1
    notes: Optional[str] = None


def scheduled_start(booking: dict, tz) -> datetime:
    """Fecha guardada + hora de 12 horas -> instante de inicio en la zona `tz`."""
    day = parse_iso_date(booking["date"])
    minutes = parse_clock_12h(booking["start_time"])
    return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=tz)


def current_status(booking: dict) -> BookingStatus:
    try:
        return BookingStatus(booking.get("status"))
    except ValueError:
        raise BookingStateError(f"Estado de reserva inválido: {booking.get('status')}") from None


EventBuilder = Callable[[dict], LifecycleEvent]


class BookingLifecycle:
    def __init__(self, store: Store, notifier: Notifier, settings: Optional[Settings] = None):
        self.store = store
        self.notifier = notifier
        self.settings = settings or get_settings()

    # ---------- Lectura ----------

    async def get_booking(self, booking_id: str) -> dict:
        booking = await self.store.get_booking(booking_id)
        if not booking:
            raise BookingNotFoundError("Reserva no encontrada")
        return booking

    async def get_for_party(self, ctx: ActorContext, booking_id: str) -> dict:
        booking = await self.get_booking(booking_id)
        if ctx.actor_id not in (booking.get("requester_id"), booking.get("provider_id")):
            raise BookingPermissionError("Sin acceso a esta reserva")
        return booking

    async def list_for_party(
        self, ctx: ActorContext, role: Optional[str] = None, status: Optional[List[BookingStatus]] = None
    ) -> List[dict]:
        statuses = [s.value for s in status] if status else None
        return await self.store.list_bookings(ctx.actor_id, role=role, status=statuses)

    # ---------- Creación ----------

    async def quote(self, ctx: ActorContext, request: BookingRequest) -> PriceQuote:
        _, _, price = await self._price(ctx, request)
        return price

    async def _price(self, ctx: ActorContext, request: BookingRequest) -> Tuple[dict, List[date], PriceQuote]:
        plan = await self._selectable_plan(request)
        start_minute = self._check_request_shape(request, plan)
        days = self._parse_dates(ctx, request.dates, start_minute)
        return plan, days, quote(
            plan.get("hourly_rate", 0),
            self.settings.extra_dependent_rate,
            request.duration_hours,
            len(days),
            request.headcount,
        )

    async def create(self, ctx: ActorContext, request: BookingRequest) -> List[dict]:
        """
        Crea una reserva `pending` por fecha. Las fechas se comprueban en el
        orden recibido; la primera que no cabe en la disponibilidad corta el
        lote y las anteriores quedan creadas (sus ids van en el error).
        """
        if ctx.actor_id == request.provider_id:
            raise BookingValidationError("No puedes reservar contigo misma", field="provider_id")

        plan, days, price = await self._price(ctx, request)
        start_minute = parse_clock(request.start_time)
        start_label = format_clock_12h(start_minute)

        rules = [AvailabilityRule.from_doc(d) for d in await self.store.list_rules(request.provider_id)]

        created: List[dict] = []
        for day, amount in zip(days, price.date_amounts):
            iso = day.isoformat()
            if not fits(open_ranges(rules, day), start_minute, request.duration_hours):
                raise BookingValidationError(
                    f"La cuidadora no está disponible el {iso} a las {start_label} "
                    f"durante {request.duration_hours} h",
                    field="dates",
                    date=iso,
                    created_ids=[str(b["_id"]) for b in created],
                )

            doc = {
                "requester_id": ctx.actor_id,
                "provider_id": request.provider_id,
                "date": iso,
                "start_time": start_label,
                "duration_hours": request.duration_hours,
                "location": request.location.strip(),
                "venue": request.venue.value,
                "headcount": request.headcount,
                "status": BookingStatus.pending.value,
                "total_price": amount,
                "plan_category": plan.get("category"),
                "notes": request.notes,
                "slot_key": slot_key(request.provider_id, iso, start_label),
                "created_at": ctx.now,
                "updated_at": ctx.now,
            }
            try:
                booking = await self.store.insert_booking(doc)
            except DuplicateKeyError:
                raise BookingValidationError(
                    f"Ya existe una reserva con la cuidadora el {iso} a las {start_label}",
                    field="dates",
                    date=iso,
                    created_ids=[str(b["_id"]) for b in created],
                ) from None

            created.append(booking)
            logger.info(f"Reserva {booking['_id']} creada ({iso} {start_label}) por {ctx.actor_id}")
            await self._emit(LifecycleEvent(
                recipient_id=request.provider_id,
                kind=events.NEW_BOOKING,
                title="Nueva solicitud de reserva",
                body=f"Tienes una nueva solicitud para el {iso} a las {start_label}.",
                metadata={"booking_id": str(booking["_id"])},
            ), ctx.now)
        return created

    # ---------- Transiciones ----------

    async def accept(self, ctx: ActorContext, booking_id: str) -> dict:
        booking = await self._for_provider(ctx, booking_id)
        return await self._transition(booking, BookingStatus.waiting_payment, ctx.now, lambda b: LifecycleEvent(
            recipient_id=b["requester_id"],
            kind=events.BOOKING_ACCEPTED,
            title="Reserva aceptada",
            body=f"Tu reserva del {b['date']} ha sido aceptada. Completa el pago para confirmarla.",
            metadata={"booking_id": str(b["_id"])},
        ))

    async def decline(self, ctx: ActorContext, booking_id: str) -> dict:
        booking = await self._for_provider(ctx, booking_id)
        return await self._transition(booking, BookingStatus.cancelled, ctx.now, lambda b: LifecycleEvent(
            recipient_id=b["requester_id"],
            kind=events.BOOKING_DECLINED,
            title="Reserva rechazada",
            body=f"Lo sentimos, tu solicitud del {b['date']} no ha sido aceptada.",
            metadata={"booking_id": str(b["_id"])},
        ))

    async def withdraw(self, ctx: ActorContext, booking_id: str) -> dict:
        booking = await self.get_booking(booking_id)
        if booking.get("requester_id") != ctx.actor_id:
            raise BookingPermissionError("Solo quien solicitó la reserva puede retirarla")
        return await self._transition(booking, BookingStatus.cancelled, ctx.now, lambda b: LifecycleEvent(
            recipient_id=b["provider_id"],
            kind=events.BOOKING_CANCELLED,
            title="Solicitud retirada",
            body=f"La solicitud del {b['date']} a las {b['start_time']} ha sido retirada.",
            metadata={"booking_id": str(b["_id"])},
        ))

    async def confirm_payment(self, booking_id: str, now: datetime) -> dict:
        """Señal del colaborador de pagos: el pago de la reserva está confirmado."""
        booking = await self.get_booking(booking_id)
        return await self._transition(booking, BookingStatus.confirmed, now, lambda b: LifecycleEvent(
            recipient_id=b["provider_id"],
            kind=events.PAYMENT_CONFIRMED,
            title="Pago confirmado",
            body=f"La reserva del {b['date']} a las {b['start_time']} está pagada y confirmada.",
            metadata={"booking_id": str(b["_id"])},
        ))

    async def start_session(self, booking: dict, now: datetime) -> dict:
        """confirmed -> active. Solo la invoca el protocolo de verificación en sitio."""
        return await self._transition(booking, BookingStatus.active, now, lambda b: LifecycleEvent(
            recipient_id=b["provider_id"],
            kind=events.SESSION_STARTED,
            title="Sesión iniciada",
            body="Identidad verificada. La sesión ha comenzado.",
            metadata={"booking_id": str(b["_id"])},
        ), stamps={"started_at": now})

    async def complete(self, ctx: ActorContext, booking_id: str) -> dict:
        booking = await self.get_for_party(ctx, booking_id)
        other = booking["provider_id"] if ctx.actor_id == booking["requester_id"] else booking["requester_id"]
        return await self._transition(booking, BookingStatus.completed, ctx.now, lambda b: LifecycleEvent(
            recipient_id=other,
            kind=events.SESSION_COMPLETED,
            title="Sesión finalizada",
            body=f"La sesión del {b['date']} ha finalizado.",
            metadata={"booking_id": str(b["_id"])},
        ), stamps={"completed_at": ctx.now})

    # ---------- Internos ----------

    async def _transition(
        self,
        booking: dict,
        target: BookingStatus,
        now: datetime,
        event: EventBuilder,
        stamps: Optional[dict] = None,
    ) -> dict:
        current = current_status(booking)
        if target not in ALLOWED[current]:
            raise BookingStateError(f"Transición no permitida: {current.value} → {target.value}")

        booking_id = str(booking["_id"])
        updated = await self.store.update_booking_status(
            booking_id, current.value, target.value, now, release_slot=target in TERMINAL, extra=stamps
        )
        if updated is None:
            raise BookingStateError("La reserva cambió de estado mientras se procesaba la solicitud")

        logger.info(f"Reserva {booking_id}: {current.value} → {target.value}")
        await self._emit(event(updated), now)
        return updated

    async def _emit(self, event: LifecycleEvent, now: datetime) -> None:
        try:
            await self.notifier.emit(event, now)
        except Exception as e:
            logger.error(f"Fallo al notificar {event.kind} a {event.recipient_id}: {e}", exc_info=True)

    async def _for_provider(self, ctx: ActorContext, booking_id: str) -> dict:
        booking = await self.get_booking(booking_id)
        if booking.get("provider_id") != ctx.actor_id:
            raise BookingPermissionError("Solo la cuidadora puede responder a esta solicitud")
        return booking

    async def _selectable_plan(self, request: BookingRequest) -> dict:
        plan = await self.store.get_plan(request.plan_id)
        if not plan or plan.get("provider_id") != request.provider_id:
            raise BookingValidationError("Plan de servicio inválido para esta cuidadora", field="plan_id")
        if not plan.get("active", False):
            raise BookingValidationError("El plan de servicio no está activo", field="plan_id")
        return plan

    def _check_request_shape(self, request: BookingRequest, plan: dict) -> int:
        """Valida todo menos las fechas y devuelve el minuto de inicio."""
        if not request.dates:
            raise BookingValidationError("Selecciona al menos una fecha", field="dates")
        try:
            start_minute = parse_clock(request.start_time)
        except ValueError:
            raise BookingValidationError(f"Hora de inicio inválida: {request.start_time}", field="start_time") from None
        if start_minute % 60:
            raise BookingValidationError("La hora de inicio debe ser en punto", field="start_time")

        minimum = int(plan.get("minimum_hours", 1))
        if request.duration_hours < max(1, minimum):
            raise BookingValidationError(
                f"La duración mínima de este plan es de {minimum} h", field="duration_hours"
            )
        if start_minute + request.duration_hours * 60 > 24 * 60:
            raise BookingValidationError("La sesión debe terminar el mismo día", field="duration_hours")
        if request.headcount < 1:
            raise BookingValidationError("Debe haber al menos una persona a cuidar", field="headcount")
        if request.venue == Venue.home and not (request.location or "").strip():
            raise BookingValidationError("La dirección es obligatoria para el servicio a domicilio", field="location")
        return start_minute

    def _parse_dates(self, ctx: ActorContext, raw: List[str], start_minute: int) -> List[date]:
        tz = self.settings.tz
        today = ctx.now.astimezone(tz).date()
        start = time(start_minute // 60, start_minute % 60)
        days: List[date] = []
        for value in raw:
            try:
                day = parse_iso_date(value)
            except ValueError:
                raise BookingValidationError(f"Fecha inválida: {value}", field="dates", date=value) from None
            if day in days:
                raise BookingValidationError(f"Fecha repetida: {value}", field="dates", date=value)
            if day < today:
                raise BookingValidationError(f"La fecha {value} ya ha pasado", field="dates", date=value)
            if day == today and datetime.combine(day, start, tzinfo=tz) <= ctx.now:
                raise BookingValidationError(
                    f"La hora de inicio del {value} ya ha pasado", field="dates", date=value
                )
            days.append(day)
        return days
