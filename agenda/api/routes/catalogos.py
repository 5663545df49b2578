# agenda/api/routes/catalogos.py
from typing import Optional

from fastapi import APIRouter, Body, Depends

from agenda.api.deps import get_auth_context, get_store, unwrap
from agenda.models.catalogo import ActivoPayload
from agenda.services.catalog_service import CatalogService

router = APIRouter()


@router.get("")
async def list_catalogos(ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await CatalogService(store).list_all(ctx))


@router.get("/{tabla}/opciones")
async def options(tabla: str, seleccionado: Optional[str] = None,
                  ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await CatalogService(store).options(ctx, tabla, seleccionado))


@router.post("/{tabla}", status_code=201)
async def create_entry(tabla: str, payload: dict = Body(...),
                       ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await CatalogService(store).create(ctx, tabla, payload))


@router.patch("/{tabla}/{entry_id}")
async def update_entry(tabla: str, entry_id: str, payload: dict = Body(...),
                       ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await CatalogService(store).update(ctx, tabla, entry_id, payload))


@router.post("/{tabla}/{entry_id}/activo")
async def toggle_entry(tabla: str, entry_id: str, payload: ActivoPayload,
                       ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await CatalogService(store).set_active(ctx, tabla, entry_id, payload.activo))


@router.delete("/{tabla}/{entry_id}")
async def delete_entry(tabla: str, entry_id: str, ctx=Depends(get_auth_context), store=Depends(get_store)):
    unwrap(await CatalogService(store).delete(ctx, tabla, entry_id))
    return {"ok": True}
