# agenda/services/catalog_service.py
from typing import Any, Dict, List, Mapping, Optional
import logging
import re

from agenda.models.catalogo import EXTRA_FIELDS, CatalogEntry
from agenda.models.common import CATALOG_TABLES
from agenda.repositories.store import Store
from agenda.services.gateway import (
    AuthContext, GatewayResult, infrastructure, not_found, permission_denied,
    unauthenticated, validation_failed,
)
from agenda.services.requisicion_validator import ValidationError

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def selectable_options(entries: List[dict], selected_id: Optional[str] = None) -> List[dict]:
    """Opciones de un selector: activos, más el ya seleccionado aunque esté inactivo."""
    return [e for e in entries if e.get("activo", True) or e.get("id") == selected_id]


def _clean(table: str, data: Mapping[str, Any], partial: bool):
    errors: List[ValidationError] = []
    out: Dict[str, Any] = {}

    if not partial or "nombre" in data:
        nombre = data.get("nombre")
        if not isinstance(nombre, str) or len(nombre.strip()) < 2:
            errors.append(ValidationError("nombre", "Nombre requerido, mínimo 2 caracteres"))
        else:
            out["nombre"] = nombre.strip()

    extras = EXTRA_FIELDS[table]
    if "color_hex" in extras and (not partial or "color_hex" in data):
        color = data.get("color_hex")
        if not isinstance(color, str) or not HEX_COLOR.match(color):
            errors.append(ValidationError("color_hex", "Color hex inválido (ej: #FF5733)"))
        else:
            out["color_hex"] = color
    if "abreviatura" in extras and (not partial or "abreviatura" in data):
        abrev = data.get("abreviatura")
        if not isinstance(abrev, str) or not abrev.strip():
            errors.append(ValidationError("abreviatura", "Abreviatura requerida"))
        else:
            out["abreviatura"] = abrev.strip()
    if "descripcion" in extras and "descripcion" in data:
        desc = data.get("descripcion")
        out["descripcion"] = desc.strip() if isinstance(desc, str) and desc.strip() else None

    if partial and "activo" in data:
        if not isinstance(data["activo"], bool):
            errors.append(ValidationError("activo", "Debe ser verdadero o falso"))
        else:
            out["activo"] = data["activo"]
    return out, errors


class CatalogService:
    def __init__(self, store: Store):
        self.store = store

    def _check(self, ctx: Optional[AuthContext], table: str, delete: bool = False) -> Optional[GatewayResult]:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if table not in CATALOG_TABLES:
            return not_found(f"Catálogo desconocido: {table}")
        caps = ctx.capabilities
        if delete and not caps.can_delete:
            return permission_denied("Solo los administradores pueden eliminar registros permanentemente")
        if not delete and not caps.can_edit:
            return permission_denied("No tienes permisos para modificar catálogos")
        return None

    async def list_all(self, ctx: Optional[AuthContext]) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_read:
            return permission_denied("Tu cuenta aún no tiene acceso")
        out = {}
        for table in CATALOG_TABLES:
            res = await self.store.query(table, order_by="nombre")
            if not res.ok:
                return infrastructure(res.error)
            out[table] = res.data
        return GatewayResult(data=out)

    async def options(self, ctx: Optional[AuthContext], table: str, selected_id: Optional[str] = None) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if table not in CATALOG_TABLES:
            return not_found(f"Catálogo desconocido: {table}")
        if not ctx.capabilities.can_read:
            return permission_denied("Tu cuenta aún no tiene acceso")
        res = await self.store.query(table, order_by="nombre")
        if not res.ok:
            return infrastructure(res.error)
        return GatewayResult(data=selectable_options(res.data, selected_id))

    async def create(self, ctx: Optional[AuthContext], table: str, data: Mapping[str, Any]) -> GatewayResult:
        denied = self._check(ctx, table)
        if denied:
            return denied
        values, errors = _clean(table, data or {}, partial=False)
        if errors:
            return validation_failed(errors)
        row = CatalogEntry(**values).model_dump(include={"id", "nombre", "activo", "created_at", *EXTRA_FIELDS[table]})
        res = await self.store.insert(table, row)
        if not res.ok:
            return infrastructure(res.error)
        return GatewayResult(data=res.data)

    async def update(self, ctx: Optional[AuthContext], table: str, row_id: str, data: Mapping[str, Any]) -> GatewayResult:
        denied = self._check(ctx, table)
        if denied:
            return denied
        values, errors = _clean(table, data or {}, partial=True)
        if errors:
            return validation_failed(errors)
        if not values:
            return validation_failed([ValidationError("_", "Nada que actualizar")])
        res = await self.store.update(table, row_id, values)
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("Registro no encontrado")
        return GatewayResult(data=res.data)

    async def set_active(self, ctx: Optional[AuthContext], table: str, row_id: str, activo: bool) -> GatewayResult:
        return await self.update(ctx, table, row_id, {"activo": activo})

    async def delete(self, ctx: Optional[AuthContext], table: str, row_id: str) -> GatewayResult:
        denied = self._check(ctx, table, delete=True)
        if denied:
            return denied
        res = await self.store.delete(table, row_id)
        if not res.ok:
            logger.info("borrado de %s/%s rechazado: %s", table, row_id, res.error.code)
            return infrastructure(res.error)
        if not res.count:
            return not_found("Registro no encontrado")
        logger.info("%s/%s eliminado por %s", table, row_id, ctx.user_id)
        return GatewayResult(data={"id": row_id})
