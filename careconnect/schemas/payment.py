from pydantic import BaseModel, Field, field_validator
from typing import Optional
import re

class PaymentConfirmed(BaseModel):
    """Señal del colaborador de pagos: el pago de una reserva se ha completado"""
    booking_id: str = Field(..., description="ID de la reserva pagada")
    transaction_id: Optional[str] = Field(None, max_length=120)

    @field_validator('booking_id')
    @classmethod
    def validate_booking_id(cls, v: str) -> str:
        """Valida que el booking_id tenga formato ObjectId válido"""
        if not re.match(r'^[0-9a-fA-F]{24}$', v):
            raise ValueError("Formato de booking_id inválido")
        return v
