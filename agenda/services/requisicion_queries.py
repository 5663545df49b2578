# agenda/services/requisicion_queries.py
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from agenda.models.common import (
    CATALOG_REFERENCES, CLOSED_STATUS_NAMES, DEFAULT_EVENT_COLOR, HISTORIAL, PROFILES,
    RECEIVED_STATUS_NAME, REQUISICIONES,
)
from agenda.models.requisicion import cantidad_pendiente
from agenda.repositories.store import Store
from agenda.services.gateway import (
    AuthContext, GatewayResult, infrastructure, not_found, permission_denied, unauthenticated,
)

# nombre de la relación embebida en cada fila
JOINS = {
    "proveedor_id": "proveedor",
    "producto_id": "producto",
    "presentacion_id": "presentacion",
    "destino_id": "destino",
    "estatus_id": "estatus",
    "unidad_cantidad_id": "unidad_cantidad",
}

SEARCH_FIELDS = ("numero_oc", "requisicion_numero", "factura_remision", "comentarios")


def build_filters(proveedor_id: Optional[str] = None, destino_id: Optional[str] = None,
                  estatus_id: Optional[str] = None, fecha_desde: Optional[str] = None,
                  fecha_hasta: Optional[str] = None) -> Dict[str, Any]:
    filt: Dict[str, Any] = {}
    if proveedor_id:
        filt["proveedor_id"] = proveedor_id
    if destino_id:
        filt["destino_id"] = destino_id
    if estatus_id:
        filt["estatus_id"] = estatus_id
    if fecha_desde or fecha_hasta:
        dr = {}
        if fecha_desde:
            dr["$gte"] = fecha_desde
        if fecha_hasta:
            dr["$lte"] = fecha_hasta
        filt["fecha_recepcion"] = dr
    return filt


def effective_date(row: dict) -> Optional[str]:
    """La fecha confirmada manda sobre la de recepción."""
    return row.get("fecha_confirmada") or row.get("fecha_recepcion")


def _status_name(row: dict) -> str:
    return ((row.get("estatus") or {}).get("nombre") or "")


def matches_search(row: dict, q: str) -> bool:
    needle = q.strip().lower()
    if not needle:
        return True
    haystack = [row.get(f) or "" for f in SEARCH_FIELDS]
    haystack += [(row.get(rel) or {}).get("nombre") or "" for rel in ("proveedor", "producto", "destino")]
    return any(needle in str(v).lower() for v in haystack)


def sort_for_table(rows: List[dict]) -> List[dict]:
    """Recibidas al final; el resto por fecha de recepción ascendente."""
    return sorted(rows, key=lambda r: (_status_name(r) == RECEIVED_STATUS_NAME, r.get("fecha_recepcion") or ""))


def upcoming_deliveries(rows: List[dict], today: date, days: int = 5) -> List[dict]:
    start, end = today.isoformat(), (today + timedelta(days=days)).isoformat()
    out = []
    for row in rows:
        if _status_name(row).lower() in CLOSED_STATUS_NAMES:
            continue
        when = effective_date(row)
        if when and start <= when <= end:
            out.append(row)
    return sorted(out, key=effective_date)


def calendar_event(row: dict) -> dict:
    color = (row.get("estatus") or {}).get("color_hex") or DEFAULT_EVENT_COLOR
    producto = (row.get("producto") or {}).get("nombre") or "S/P"
    proveedor = (row.get("proveedor") or {}).get("nombre") or "S/P"
    return {
        "id": row["id"],
        "title": f"{producto} - {proveedor}",
        "start": effective_date(row),
        "background_color": color,
        "border_color": color,
        "extended_props": {
            "requisicion": row,
            "proveedor_nombre": proveedor,
            "estatus_nombre": _status_name(row),
            "estatus_color": color,
        },
    }


class RequisicionQueries:
    def __init__(self, store: Store):
        self.store = store

    def _check(self, ctx: Optional[AuthContext]) -> Optional[GatewayResult]:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_read:
            return permission_denied("Tu cuenta aún no tiene acceso")
        return None

    async def _catalog_index(self):
        index: Dict[str, Dict[str, dict]] = {}
        for table in set(CATALOG_REFERENCES.values()):
            res = await self.store.query(table)
            if not res.ok:
                return None, res.error
            index[table] = {c["id"]: c for c in res.data}
        return index, None

    @staticmethod
    def _enrich(row: dict, index: Dict[str, Dict[str, dict]]) -> dict:
        out = dict(row)
        for key, rel in JOINS.items():
            out[rel] = index[CATALOG_REFERENCES[key]].get(row.get(key))
        out["cantidad_pendiente"] = cantidad_pendiente(row)
        return out

    async def _rows(self, filters: Dict[str, Any]):
        res = await self.store.query(REQUISICIONES, filters, order_by="fecha_recepcion")
        if not res.ok:
            return None, res.error
        index, err = await self._catalog_index()
        if err:
            return None, err
        return [self._enrich(r, index) for r in res.data], None

    async def list(self, ctx: Optional[AuthContext], filters: Optional[Dict[str, Any]] = None,
                   search: Optional[str] = None) -> GatewayResult:
        denied = self._check(ctx)
        if denied:
            return denied
        rows, err = await self._rows(filters or {})
        if err:
            return infrastructure(err)
        if search:
            rows = [r for r in rows if matches_search(r, search)]
        return GatewayResult(data=sort_for_table(rows))

    async def get(self, ctx: Optional[AuthContext], requisicion_id: str) -> GatewayResult:
        denied = self._check(ctx)
        if denied:
            return denied
        rows, err = await self._rows({"id": requisicion_id})
        if err:
            return infrastructure(err)
        if not rows:
            return not_found("La requisición no existe")
        return GatewayResult(data=rows[0])

    async def upcoming(self, ctx: Optional[AuthContext], today: date, days: int = 5) -> GatewayResult:
        denied = self._check(ctx)
        if denied:
            return denied
        # se trae todo: una fila pedida hace meses puede estar confirmada para hoy
        rows, err = await self._rows({})
        if err:
            return infrastructure(err)
        return GatewayResult(data=upcoming_deliveries(rows, today, days))

    async def calendar(self, ctx: Optional[AuthContext], filters: Optional[Dict[str, Any]] = None) -> GatewayResult:
        denied = self._check(ctx)
        if denied:
            return denied
        rows, err = await self._rows(filters or {})
        if err:
            return infrastructure(err)
        return GatewayResult(data=[calendar_event(r) for r in rows if effective_date(r)])

    async def historial(self, ctx: Optional[AuthContext], requisicion_id: Optional[str] = None) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_edit:
            return permission_denied("No tienes permisos para consultar el historial")
        filt = {"requisicion_id": requisicion_id} if requisicion_id else {}
        res = await self.store.query(HISTORIAL, filt, order_by="created_at", descending=True)
        if not res.ok:
            return infrastructure(res.error)
        profiles = await self.store.query(PROFILES)
        if not profiles.ok:
            return infrastructure(profiles.error)
        by_id = {p["id"]: p for p in profiles.data}
        out = []
        for entry in res.data:
            author = by_id.get(entry.get("usuario_id"))
            out.append({**entry, "profiles": (
                {"id": author["id"], "nombre_completo": author.get("nombre_completo"), "rol": author.get("rol")}
                if author else None)})
        return GatewayResult(data=out)
