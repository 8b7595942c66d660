# careconnect/utils.py
from typing import Any, Dict, Optional
import re
from bson import ObjectId
from datetime import date, datetime

def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convierte _id -> id (str) y todos los ObjectIds a strings.
    También convierte datetime a ISO format strings.
    Si doc es None, devuelve {}.
    """
    if doc is None:
        return {}
    d = dict(doc)

    if "_id" in d:
        d["id"] = str(d.pop("_id"))

    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, datetime):
            d[key] = value.isoformat()
        elif isinstance(value, dict):
            d[key] = to_id(value)
        elif isinstance(value, list):
            d[key] = [
                str(item) if isinstance(item, ObjectId)
                else item.isoformat() if isinstance(item, datetime)
                else to_id(item) if isinstance(item, dict)
                else item
                for item in value
            ]

    return d

def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)

# ==================== Fechas y horas ====================
# Las horas se manejan como minutos desde medianoche (0..1439).

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_CLOCK_12H = re.compile(r"^(0?[1-9]|1[0-2]):([0-5]\d)\s*([AaPp][Mm])$")

def parse_hhmm(value: str) -> int:
    """'08:30' -> 510. Lanza ValueError si el formato no es HH:MM de 24 horas."""
    m = _HHMM.match((value or "").strip())
    if not m:
        raise ValueError(f"Hora inválida: {value!r}")
    return int(m.group(1)) * 60 + int(m.group(2))

def parse_clock_12h(value: str) -> int:
    """'02:00 PM' -> 840. Convierte un reloj de 12 horas a minutos."""
    m = _CLOCK_12H.match((value or "").strip())
    if not m:
        raise ValueError(f"Hora inválida: {value!r}")
    hours, minutes, period = int(m.group(1)), int(m.group(2)), m.group(3).upper()
    if period == "PM" and hours < 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return hours * 60 + minutes

def parse_clock(value: str) -> int:
    """Acepta tanto '14:00' como '02:00 PM'."""
    try:
        return parse_hhmm(value)
    except ValueError:
        return parse_clock_12h(value)

def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"

def format_clock_12h(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    period = "AM" if hours < 12 else "PM"
    hours = hours % 12 or 12
    return f"{hours:02d}:{mins:02d} {period}"

def parse_iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"Fecha inválida: {value!r}") from None
