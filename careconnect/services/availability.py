"""
Índice de disponibilidad de un cuidador.

Convierte las reglas de horario (semanales o de fecha concreta) en franjas
reservables para un día. Todo es puro: el resultado depende solo de las
reglas recibidas.

Limitaciones conocidas:
- Las franjas de reglas solapadas se devuelven tal cual, sin fusionar.
- Las horas de inicio ofrecidas son horas enteras; los bordes que no caen en
  punto se truncan a la hora.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ..utils import format_hhmm, parse_hhmm, parse_iso_date


@dataclass(frozen=True)
class AvailabilityRule:
    provider_id: str
    start_minute: int
    end_minute: int
    is_recurring: bool
    day_of_week: Optional[int] = None   # 0 = domingo ... 6 = sábado
    date: Optional[str] = None          # "YYYY-MM-DD"
    id: Optional[str] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "AvailabilityRule":
        return cls(
            id=str(doc["_id"]) if doc.get("_id") is not None else doc.get("id"),
            provider_id=str(doc.get("provider_id", "")),
            start_minute=parse_hhmm(doc["start_time"]),
            end_minute=parse_hhmm(doc["end_time"]),
            is_recurring=bool(doc.get("is_recurring")),
            day_of_week=doc.get("day_of_week"),
            date=doc.get("date"),
        )

    def matches(self, target: date) -> bool:
        if self.is_recurring:
            return self.day_of_week == day_of_week(target)
        return self.date == target.isoformat()


@dataclass(frozen=True)
class TimeRange:
    start_minute: int
    end_minute: int

    @property
    def start_hour(self) -> int:
        return self.start_minute // 60

    @property
    def end_hour(self) -> int:
        return self.end_minute // 60

    def contains(self, start_minute: int, duration_hours: int) -> bool:
        return self.start_minute <= start_minute and start_minute + duration_hours * 60 <= self.end_minute

    def to_dict(self) -> Dict[str, str]:
        return {"start": format_hhmm(self.start_minute), "end": format_hhmm(self.end_minute)}


@dataclass(frozen=True)
class DaySnapshot:
    date: str
    bookable: bool
    ranges: List[TimeRange]
    start_hours: List[int]


def day_of_week(target: date) -> int:
    """Día de la semana con 0 = domingo (convención de las reglas guardadas)."""
    return (target.weekday() + 1) % 7


def is_bookable(rules: Iterable[AvailabilityRule], target: date) -> bool:
    return any(rule.matches(target) for rule in rules)


def open_ranges(rules: Iterable[AvailabilityRule], target: date) -> List[TimeRange]:
    """Franjas de todas las reglas que aplican al día, en el orden de las reglas."""
    return [TimeRange(r.start_minute, r.end_minute) for r in rules if r.matches(target)]


def start_hours(ranges: Iterable[TimeRange]) -> List[int]:
    """
    Horas enteras seleccionables como inicio: start_hour <= h < end_hour por
    cada franja. No se deduplican entre franjas solapadas.
    """
    hours: List[int] = []
    for r in ranges:
        hours.extend(range(r.start_hour, r.end_hour))
    return hours


def fits(ranges: Iterable[TimeRange], start_minute: int, duration_hours: int) -> bool:
    """La ventana [inicio, inicio + duración] cabe entera en alguna franja."""
    return any(r.contains(start_minute, duration_hours) for r in ranges)


def day_snapshot(rules: Iterable[AvailabilityRule], target: date) -> DaySnapshot:
    rules = list(rules)
    ranges = open_ranges(rules, target)
    return DaySnapshot(
        date=target.isoformat(),
        bookable=bool(ranges),
        ranges=ranges,
        start_hours=start_hours(ranges),
    )


def validate_rule(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Valida y normaliza una regla antes de guardarla.
    Lanza ValueError con un mensaje legible si no es coherente.
    """
    is_recurring = bool(payload.get("is_recurring"))
    dow = payload.get("day_of_week")
    day = payload.get("date")

    if is_recurring:
        if dow is None or day is not None:
            raise ValueError("Una regla semanal necesita day_of_week y no admite date")
        if not isinstance(dow, int) or isinstance(dow, bool) or not 0 <= dow <= 6:
            raise ValueError(f"day_of_week debe estar entre 0 y 6, recibido {dow!r}")
    else:
        if day is None or dow is not None:
            raise ValueError("Una regla de fecha necesita date y no admite day_of_week")
        day = parse_iso_date(day).isoformat()

    start = parse_hhmm(payload.get("start_time", ""))
    end = parse_hhmm(payload.get("end_time", ""))
    if end <= start:
        raise ValueError("end_time debe ser posterior a start_time")

    return {
        "is_recurring": is_recurring,
        "day_of_week": dow if is_recurring else None,
        "date": None if is_recurring else day,
        "start_time": format_hhmm(start),
        "end_time": format_hhmm(end),
    }
