"""
Protocolo de verificación en sitio (código QR).

La cuidadora muestra un código con el formato

    KHMVP-VERIFY:<booking_id>:<provider_id>:<requester_id>

y el solicitante lo escanea. Si los tres identificadores cuadran y ya es la
hora de inicio, la reserva pasa de `confirmed` a `active`. Este módulo es el
único que dispara esa transición.

El formato antiguo `KHMVP-BOOKING:<booking_id>` solo lleva la reserva y se
acepta por compatibilidad: no comprueba cuidadora ni solicitante.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
import logging

from ..config import Settings, get_settings
from . import notifications as events
from .errors import BookingPermissionError, BookingStateError
from .lifecycle import ActorContext, BookingLifecycle, BookingStatus, current_status, scheduled_start
from .notifications import Notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FullToken:
    booking_id: str
    provider_id: str
    requester_id: str


@dataclass(frozen=True)
class LegacyToken:
    """Formato antiguo: solo el id de la reserva, sin segundo ni tercer factor."""
    booking_id: str


ScanToken = Union[FullToken, LegacyToken]


class ScanOutcome(str, Enum):
    started = "started"
    already_active = "already_active"
    malformed = "malformed"
    early = "early"
    wrong_session = "wrong_session"
    wrong_provider = "wrong_provider"
    wrong_requester = "wrong_requester"


@dataclass
class ScanResult:
    outcome: ScanOutcome
    booking: Optional[dict] = None
    alert_recipient: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (ScanOutcome.started, ScanOutcome.already_active)


def encode_token(booking_id: str, provider_id: str, requester_id: str, prefix: Optional[str] = None) -> str:
    prefix = prefix or get_settings().token_prefix
    return f"{prefix}:{booking_id}:{provider_id}:{requester_id}"


def encode_legacy_token(booking_id: str, prefix: Optional[str] = None) -> str:
    prefix = prefix or get_settings().legacy_token_prefix
    return f"{prefix}:{booking_id}"


def parse_token(text: str, settings: Optional[Settings] = None) -> Optional[ScanToken]:
    """Devuelve el token o None si el texto no tiene ninguno de los dos formatos."""
    settings = settings or get_settings()
    parts = (text or "").strip().split(":")
    if len(parts) == 4 and parts[0] == settings.token_prefix and all(parts[1:]):
        return FullToken(booking_id=parts[1], provider_id=parts[2], requester_id=parts[3])
    if len(parts) == 2 and parts[0] == settings.legacy_token_prefix and parts[1]:
        return LegacyToken(booking_id=parts[1])
    return None


class VerificationProtocol:
    def __init__(self, lifecycle: BookingLifecycle, notifier: Notifier, settings: Optional[Settings] = None):
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.settings = settings or get_settings()

    async def issue_token(self, ctx: ActorContext, booking_id: str) -> str:
        """Texto del código que muestra la cuidadora (renderizarlo como imagen es cosa del cliente)."""
        booking = await self.lifecycle.get_booking(booking_id)
        if booking.get("provider_id") != ctx.actor_id:
            raise BookingPermissionError("Solo la cuidadora asignada puede mostrar el código")
        status = current_status(booking)
        if status != BookingStatus.confirmed:
            raise BookingStateError(f"El código solo está disponible para reservas confirmadas (estado: {status.value})")
        return encode_token(str(booking["_id"]), booking["provider_id"], booking["requester_id"],
                            prefix=self.settings.token_prefix)

    async def scan(self, ctx: ActorContext, booking_id: str, payload: str) -> ScanResult:
        """
        Valida un escaneo contra la reserva `booking_id`. Gana el primer fallo:
        hora, reserva, cuidadora, solicitante. Un fallo nunca cambia el estado.
        """
        booking = await self.lifecycle.get_booking(booking_id)
        target_id = str(booking["_id"])

        token = parse_token(payload, self.settings)
        if isinstance(token, LegacyToken) and not self.settings.accept_legacy_tokens:
            token = None
        if token is None:
            logger.info(f"Escaneo con formato inválido para la reserva {target_id} por {ctx.actor_id}")
            return ScanResult(ScanOutcome.malformed, booking)

        starts_at = scheduled_start(booking, self.settings.tz)
        if ctx.now < starts_at:
            return ScanResult(ScanOutcome.early, booking)

        if token.booking_id != target_id:
            recipient = token.provider_id if isinstance(token, FullToken) else None
            if recipient:
                await self._alert(ctx, recipient, token.booking_id,
                                  "Alguien ha escaneado tu código en otra reserva.")
            else:
                logger.warning(
                    f"Código antiguo de la reserva {token.booking_id} escaneado en la reserva {target_id} "
                    f"por {ctx.actor_id} (sin cuidadora a la que avisar)"
                )
            return ScanResult(ScanOutcome.wrong_session, booking, alert_recipient=recipient)

        if isinstance(token, LegacyToken):
            logger.warning(f"Código antiguo aceptado para la reserva {target_id} (sin verificar cuidadora ni solicitante)")
        else:
            if token.provider_id != booking.get("provider_id"):
                return ScanResult(ScanOutcome.wrong_provider, booking)

            if token.requester_id != ctx.actor_id or ctx.actor_id != booking.get("requester_id"):
                recipient = booking["provider_id"]
                await self._alert(ctx, recipient, target_id,
                                  "Esta no es la persona que solicitó la reserva.")
                return ScanResult(ScanOutcome.wrong_requester, booking, alert_recipient=recipient)

        return await self._start(booking, ctx)

    async def _start(self, booking: dict, ctx: ActorContext) -> ScanResult:
        status = current_status(booking)
        if status == BookingStatus.active:
            return ScanResult(ScanOutcome.already_active, booking)
        if status != BookingStatus.confirmed:
            raise BookingStateError(f"La reserva no está lista para iniciar la sesión (estado: {status.value})")

        try:
            updated = await self.lifecycle.start_session(booking, ctx.now)
        except BookingStateError:
            # Otro escaneo ganó la carrera
            fresh = await self.lifecycle.get_booking(str(booking["_id"]))
            if current_status(fresh) == BookingStatus.active:
                return ScanResult(ScanOutcome.already_active, fresh)
            raise
        return ScanResult(ScanOutcome.started, updated)

    async def _alert(self, ctx: ActorContext, recipient_id: str, booking_id: str, body: str) -> None:
        scanned_by = ctx.actor_id
        logger.warning(f"Alerta de escaneo para {recipient_id}: {scanned_by} sobre la reserva {booking_id}")
        try:
            await self.notifier.dispatch(
                recipient_id,
                events.SCAN_MISMATCH,
                "Alerta de seguridad",
                body,
                {"booking_id": booking_id, "scanned_by": scanned_by},
                now=ctx.now,
            )
        except Exception as e:
            logger.error(f"No se pudo enviar la alerta de escaneo a {recipient_id}: {e}", exc_info=True)
