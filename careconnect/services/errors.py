"""
Errores de dominio del núcleo de reservas.

Los routers no los capturan uno a uno: main.py registra un handler que los
traduce a respuestas HTTP (400 / 403 / 404 / 409).
"""
from typing import List, Optional


class BookingError(Exception):
    """Base de todos los errores del núcleo"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"message": self.message}


class BookingValidationError(BookingError):
    """Datos de la solicitud inválidos (ventana no disponible, horas mínimas, dirección...)"""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        date: Optional[str] = None,
        created_ids: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.field = field
        self.date = date
        self.created_ids = list(created_ids or [])

    def to_detail(self) -> dict:
        detail = {"message": self.message}
        if self.field:
            detail["field"] = self.field
        if self.date:
            detail["date"] = self.date
        if self.created_ids:
            detail["created_ids"] = self.created_ids
        return detail


class BookingStateError(BookingError):
    """Transición no permitida desde el estado actual"""

    status_code = 409


class BookingNotFoundError(BookingError):
    status_code = 404


class BookingPermissionError(BookingError):
    status_code = 403
