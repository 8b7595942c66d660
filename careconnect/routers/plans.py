# careconnect/routers/plans.py
from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional, List, Dict, Any

from ..db import get_store
from ..store import Store
from ..security import get_current_user_id
from ..utils import to_id
from ..schemas.plan import PlanCreate, PlanPatch, PlanToggle, PlanOut

router = APIRouter()

async def _own_plan(store: Store, plan_id: str, current_id: str) -> Dict[str, Any]:
    plan = await store.get_plan(plan_id)
    if not plan:
        raise HTTPException(404, "Plan no encontrado")
    if str(plan.get("provider_id")) != current_id:
        raise HTTPException(403, "No eres el propietario")
    return plan

# GET /plans?provider_id=...
@router.get("", response_model=List[PlanOut])
async def list_plans(
    provider_id: Optional[str] = None,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    if provider_id and provider_id != current_id:
        # público: solo los planes seleccionables de otra cuidadora
        docs = await store.list_plans(provider_id, active_only=True)
    else:
        docs = await store.list_plans(current_id)   # "mis planes"
    return [to_id(d) for d in docs]

# POST /plans
@router.post("", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
async def create_plan(
    payload: PlanCreate,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    doc = payload.model_dump(mode="json")
    doc["provider_id"] = current_id
    doc["description"] = doc.get("description") or ""
    created = await store.insert_plan(doc)
    return to_id(created)

# PATCH /plans/{plan_id}  (editar tarifa/horas mínimas/descripción)
@router.patch("/{plan_id}", response_model=PlanOut)
async def patch_plan(
    plan_id: str,
    payload: PlanPatch,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    plan = await _own_plan(store, plan_id, current_id)
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        return to_id(plan)
    return to_id(await store.update_plan(plan_id, updates))

# POST /plans/{plan_id}/toggle   (activar/desactivar rápido)
@router.post("/{plan_id}/toggle", response_model=PlanOut)
async def toggle_plan(
    plan_id: str,
    body: PlanToggle,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    await _own_plan(store, plan_id, current_id)
    return to_id(await store.update_plan(plan_id, {"active": body.active}))

# DELETE /plans/{plan_id}
@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(
    plan_id: str,
    store: Store = Depends(get_store),
    current_id: str = Depends(get_current_user_id),
):
    await _own_plan(store, plan_id, current_id)
    # Las reservas existentes no se ven afectadas: su precio quedó congelado al crearlas
    await store.delete_plan(plan_id)
