# agenda/services/gateway.py
"""
Punto único de escritura.

Cada llamada recorre: autenticar -> verificar capacidad -> validar ->
persistir -> (update) diff + historial. El primer paso que falla corta la
cadena. Nada se lanza hacia afuera: todo vuelve como ``GatewayResult``.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging

from agenda.models.common import CATALOG_REFERENCES, REQUISICIONES
from agenda.models.requisicion import CampoModificado, RequisicionInDB
from agenda.repositories.store import AUDIT_FAILED, FOREIGN_KEY_VIOLATION, Store, StoreError
from agenda.services import audit_service
from agenda.services.audit_outbox import AuditOutbox, audit_outbox
from agenda.services.requisicion_validator import Mode, ValidationError, validate
from agenda.services.role_policy import Capabilities, capabilities_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Usuario que actúa; se pasa explícitamente en cada llamada."""
    user_id: str
    rol: Any = None
    nombre_completo: Optional[str] = None

    @property
    def capabilities(self) -> Capabilities:
        return capabilities_for(self.rol)


class ErrorKind(str, Enum):
    permission = "permission"
    validation = "validation"
    infrastructure = "infrastructure"
    not_found = "not_found"


@dataclass
class GatewayError:
    kind: ErrorKind
    message: str
    fields: List[ValidationError] = field(default_factory=list)
    detail: Optional[str] = None


@dataclass
class GatewayResult:
    data: Any = None
    error: Optional[GatewayError] = None
    audit_pending: bool = False
    cambios: List[CampoModificado] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


REFERENCED_ELSEWHERE = (
    "No se puede eliminar porque está siendo utilizado en requisiciones existentes. "
    "Intente desactivarlo en su lugar."
)


def permission_denied(message: str) -> GatewayResult:
    return GatewayResult(error=GatewayError(ErrorKind.permission, message))


def validation_failed(errors: List[ValidationError]) -> GatewayResult:
    return GatewayResult(error=GatewayError(ErrorKind.validation, "Datos inválidos", fields=list(errors)))


def not_found(message: str) -> GatewayResult:
    return GatewayResult(error=GatewayError(ErrorKind.not_found, message))


def infrastructure(err: StoreError) -> GatewayResult:
    if err.code == FOREIGN_KEY_VIOLATION:
        return GatewayResult(error=GatewayError(ErrorKind.infrastructure, REFERENCED_ELSEWHERE, detail=err.message))
    return GatewayResult(error=GatewayError(ErrorKind.infrastructure, "Error al guardar", detail=err.message))


def unauthenticated(ctx: Optional[AuthContext]) -> Optional[GatewayResult]:
    if ctx is None or not ctx.user_id:
        return permission_denied("Usuario no autenticado")
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequisicionGateway:
    def __init__(self, store: Store, outbox: AuditOutbox = audit_outbox,
                 clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self.outbox = outbox
        self.clock = clock

    async def _load_catalogs(self, data: Dict[str, Any]):
        """Carga solo las filas de catálogo que el payload referencia."""
        catalogs: Dict[str, Dict[str, dict]] = {}
        for key, table in CATALOG_REFERENCES.items():
            ref_id = data.get(key)
            if not isinstance(ref_id, str) or not ref_id.strip():
                continue
            res = await self.store.get(table, ref_id.strip())
            if not res.ok:
                return None, res.error
            entries = catalogs.setdefault(table, {})
            if res.data:
                entries[res.data["id"]] = res.data
        return catalogs, None

    async def create(self, ctx: Optional[AuthContext], data: Dict[str, Any]) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_create:
            logger.warning("create denegado a %s (%s)", ctx.user_id, ctx.rol)
            return permission_denied("No tienes permisos para crear requisiciones")

        catalogs, err = await self._load_catalogs(data if isinstance(data, Mapping) else {})
        if err:
            return infrastructure(err)
        outcome = validate(data, Mode.create, ctx.rol, catalogs=catalogs)
        if not outcome.ok:
            return validation_failed(outcome.errors)

        now = self.clock()
        row = RequisicionInDB(**outcome.value, created_by=ctx.user_id, created_at=now, updated_at=now).model_dump()
        res = await self.store.insert(REQUISICIONES, row)
        if not res.ok:
            return infrastructure(res.error)
        logger.info("requisición %s creada por %s", row["id"], ctx.user_id)
        return GatewayResult(data=res.data)

    async def update(self, ctx: Optional[AuthContext], requisicion_id: str, data: Dict[str, Any]) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_edit:
            logger.warning("update de %s denegado a %s (%s)", requisicion_id, ctx.user_id, ctx.rol)
            return permission_denied("No tienes permisos para editar requisiciones")

        current = await self.store.get(REQUISICIONES, requisicion_id)
        if not current.ok:
            return infrastructure(current.error)
        if not current.data:
            return not_found("La requisición no existe")
        existing = current.data

        catalogs, err = await self._load_catalogs(data if isinstance(data, Mapping) else {})
        if err:
            return infrastructure(err)
        outcome = validate(data, Mode.update, ctx.rol, catalogs=catalogs, existing=existing)
        if not outcome.ok:
            return validation_failed(outcome.errors)

        # last-write-wins: el diff es contra la fila leída justo antes de escribir
        now = self.clock()
        cambios = audit_service.diff(existing, outcome.value)
        rows = audit_service.audit_rows(requisicion_id, cambios, ctx.user_id, now)
        changes = {**outcome.value, "updated_at": now}

        res = await self.store.update_with_audit(requisicion_id, changes, rows)
        if res.error and res.error.code == AUDIT_FAILED:
            self.outbox.enqueue(rows)
            return GatewayResult(data=res.data, audit_pending=True, cambios=cambios)
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("La requisición no existe o no se pudo actualizar")
        if rows:
            logger.info("requisición %s: %d campos en historial", requisicion_id, len(rows))
        return GatewayResult(data=res.data, cambios=cambios)

    async def delete(self, ctx: Optional[AuthContext], requisicion_id: str) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_delete:
            logger.warning("delete de %s denegado a %s (%s)", requisicion_id, ctx.user_id, ctx.rol)
            return permission_denied("Solo el administrador puede eliminar requisiciones")

        res = await self.store.delete_requisicion(requisicion_id)
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("La requisición no existe o no se pudo eliminar")
        logger.info("requisición %s eliminada por %s", requisicion_id, ctx.user_id)
        return GatewayResult(data={"id": requisicion_id})
