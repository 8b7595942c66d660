"""
Calculadora de precios.

total = tarifa * horas * fechas + recargo * max(0, personas - 1) * horas * fechas

Se calcula en céntimos con Decimal (ROUND_HALF_UP). Cada fecha se guarda como
una reserva independiente, así que el total se reparte entre las fechas: los
primeros `total_cents % fechas` reciben un céntimo extra y la suma de las
filas coincide exactamente con el total.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Union

Number = Union[int, float, Decimal, str]

CENT = Decimal("0.01")


def _to_cents(amount: Decimal) -> int:
    return int((amount / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _from_cents(cents: int) -> float:
    return float(Decimal(cents) * CENT)


@dataclass(frozen=True)
class PriceQuote:
    total: float
    per_date: float
    date_amounts: List[float]
    hourly_rate: float
    surcharge: float
    hours_per_date: int
    date_count: int
    headcount: int

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "per_date": self.per_date,
            "date_amounts": list(self.date_amounts),
            "hourly_rate": self.hourly_rate,
            "surcharge": self.surcharge,
            "hours_per_date": self.hours_per_date,
            "date_count": self.date_count,
            "headcount": self.headcount,
        }


def total_cents(rate: Number, surcharge: Number, hours_per_date: int, date_count: int, headcount: int) -> int:
    rate_d = Decimal(str(rate))
    surcharge_d = Decimal(str(surcharge))
    extra = max(0, headcount - 1)
    total = rate_d * hours_per_date * date_count + surcharge_d * extra * hours_per_date * date_count
    return _to_cents(total)


def split_cents(cents: int, parts: int) -> List[int]:
    base, remainder = divmod(cents, parts)
    return [base + 1 if i < remainder else base for i in range(parts)]


def quote(rate: Number, surcharge: Number, hours_per_date: int, date_count: int, headcount: int) -> PriceQuote:
    if hours_per_date < 1:
        raise ValueError("hours_per_date debe ser >= 1")
    if date_count < 1:
        raise ValueError("date_count debe ser >= 1")
    if headcount < 1:
        raise ValueError("headcount debe ser >= 1")
    if Decimal(str(rate)) < 0 or Decimal(str(surcharge)) < 0:
        raise ValueError("Las tarifas no pueden ser negativas")

    cents = total_cents(rate, surcharge, hours_per_date, date_count, headcount)
    per_date_cents = _to_cents(Decimal(cents) * CENT / date_count)
    return PriceQuote(
        total=_from_cents(cents),
        per_date=_from_cents(per_date_cents),
        date_amounts=[_from_cents(c) for c in split_cents(cents, date_count)],
        hourly_rate=float(rate),
        surcharge=float(surcharge),
        hours_per_date=hours_per_date,
        date_count=date_count,
        headcount=headcount,
    )
