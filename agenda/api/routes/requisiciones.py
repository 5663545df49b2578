# agenda/api/routes/requisiciones.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from agenda.api.deps import get_auth_context, get_store, unwrap
from agenda.core.config import settings
from agenda.services.gateway import RequisicionGateway
from agenda.services.requisicion_queries import RequisicionQueries, build_filters

router = APIRouter()


@router.get("")
async def list_requisiciones(
    ctx=Depends(get_auth_context), store=Depends(get_store),
    proveedor_id: Optional[str] = None, destino_id: Optional[str] = None, estatus_id: Optional[str] = None,
    fecha_desde: Optional[str] = None, fecha_hasta: Optional[str] = None, search: Optional[str] = None,
):
    filt = build_filters(proveedor_id, destino_id, estatus_id, fecha_desde, fecha_hasta)
    return unwrap(await RequisicionQueries(store).list(ctx, filt, search=search))


@router.get("/proximas")
async def upcoming(ctx=Depends(get_auth_context), store=Depends(get_store),
                   dias: Optional[int] = Query(None, ge=0, le=60)):
    days = settings.upcoming_days if dias is None else dias
    return unwrap(await RequisicionQueries(store).upcoming(ctx, date.today(), days))


@router.get("/calendario")
async def calendar(
    ctx=Depends(get_auth_context), store=Depends(get_store),
    proveedor_id: Optional[str] = None, destino_id: Optional[str] = None, estatus_id: Optional[str] = None,
):
    filt = build_filters(proveedor_id, destino_id, estatus_id)
    return unwrap(await RequisicionQueries(store).calendar(ctx, filt))


@router.get("/{requisicion_id}")
async def get_requisicion(requisicion_id: str, ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await RequisicionQueries(store).get(ctx, requisicion_id))


@router.post("", status_code=201)
async def create_requisicion(payload: dict = Body(...), ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await RequisicionGateway(store).create(ctx, payload))


@router.patch("/{requisicion_id}")
async def update_requisicion(requisicion_id: str, payload: dict = Body(...),
                             ctx=Depends(get_auth_context), store=Depends(get_store)):
    result = await RequisicionGateway(store).update(ctx, requisicion_id, payload)
    data = unwrap(result)
    return {
        "requisicion": data,
        "cambios": [c.model_dump() for c in result.cambios],
        "audit_pending": result.audit_pending,
    }


@router.delete("/{requisicion_id}")
async def delete_requisicion(requisicion_id: str, ctx=Depends(get_auth_context), store=Depends(get_store)):
    unwrap(await RequisicionGateway(store).delete(ctx, requisicion_id))
    return {"ok": True}
