# careconnect/routers/availability.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List
from datetime import datetime, timezone
import logging

from ..db import get_store
from ..store import Store
from ..security import get_current_user_id, get_now
from ..utils import to_id, parse_iso_date
from ..schemas.availability import RulesCreate, RulesClear, RuleOut, DayAvailabilityOut
from ..services.availability import AvailabilityRule, day_snapshot, validate_rule

logger = logging.getLogger(__name__)

router = APIRouter()

# GET /availability/{provider_id}?date=YYYY-MM-DD
@router.get("/{provider_id}", response_model=DayAvailabilityOut)
async def get_day_availability(
    provider_id: str,
    date: str = Query(..., description="YYYY-MM-DD"),
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    """¿Se puede reservar ese día? Franjas abiertas y horas de inicio seleccionables."""
    try:
        day = parse_iso_date(date)
    except ValueError as e:
        raise HTTPException(400, str(e))

    rules = [AvailabilityRule.from_doc(d) for d in await store.list_rules(provider_id)]
    snap = day_snapshot(rules, day)
    return {
        "provider_id": provider_id,
        "date": snap.date,
        "bookable": snap.bookable,
        "ranges": [r.to_dict() for r in snap.ranges],
        "start_hours": snap.start_hours,
    }

# GET /availability/{provider_id}/rules
@router.get("/{provider_id}/rules", response_model=List[RuleOut])
async def list_rules(
    provider_id: str,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    return [to_id(d) for d in await store.list_rules(provider_id)]

# POST /availability/rules  (lote de reglas de la cuidadora actual)
@router.post("/rules", response_model=List[RuleOut], status_code=status.HTTP_201_CREATED)
async def create_rules(
    payload: RulesCreate,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
):
    docs = []
    for i, rule in enumerate(payload.rules):
        try:
            clean = validate_rule(rule.model_dump())
        except ValueError as e:
            raise HTTPException(400, f"Regla {i + 1}: {e}")
        docs.append({**clean, "provider_id": current_id, "created_at": now.astimezone(timezone.utc)})

    created = await store.insert_rules(docs)
    logger.info(f"{len(created)} reglas de disponibilidad creadas para {current_id}")
    return [to_id(d) for d in created]

# POST /availability/rules/clear  (borra las reglas de fecha de esos días antes de reinsertarlas)
@router.post("/rules/clear")
async def clear_dated_rules(
    payload: RulesClear,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    dates = []
    for value in payload.dates:
        try:
            dates.append(parse_iso_date(value).isoformat())
        except ValueError as e:
            raise HTTPException(400, str(e))
    deleted = await store.clear_dated_rules(current_id, dates)
    return {"deleted": deleted}

# DELETE /availability/rules/{rule_id}
@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: str,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    rule = await store.get_rule(rule_id)
    if not rule:
        raise HTTPException(404, "Regla no encontrada")
    if str(rule.get("provider_id")) != current_id:
        raise HTTPException(403, "No eres el propietario")
    await store.delete_rule(rule_id)
