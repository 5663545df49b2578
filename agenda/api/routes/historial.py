# agenda/api/routes/historial.py
from typing import Optional

from fastapi import APIRouter, Depends

from agenda.api.deps import get_auth_context, get_store, unwrap
from agenda.services.requisicion_queries import RequisicionQueries

router = APIRouter()


@router.get("")
async def list_historial(requisicion_id: Optional[str] = None,
                         ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await RequisicionQueries(store).historial(ctx, requisicion_id))
