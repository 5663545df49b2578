# agenda/services/user_approval.py
"""
Ciclo de vida de las cuentas.

pendiente --aprobar(rol)--> rol operativo
pendiente --rechazar-----> eliminada (identidad y perfil, sin borrado lógico)

Ningún camino devuelve una cuenta a ``pendiente``.
"""
from datetime import datetime, timezone
from typing import Optional
import logging

from agenda.models.common import ASSIGNABLE_ROLES, PROFILES, USUARIOS, Rol, parse_rol
from agenda.core.security import hash_password, password_problem
from agenda.repositories.store import Store
from agenda.services.gateway import (
    AuthContext, GatewayResult, infrastructure, not_found, permission_denied,
    unauthenticated, validation_failed,
)
from agenda.services.requisicion_validator import ValidationError

logger = logging.getLogger(__name__)

MANAGE_DENIED = "No tienes permisos para gestionar usuarios"


def _assignable(rol) -> Optional[Rol]:
    parsed = parse_rol(rol)
    return parsed if parsed in ASSIGNABLE_ROLES else None


class UserApprovalWorkflow:
    def __init__(self, store: Store):
        self.store = store

    def _check_manager(self, ctx: Optional[AuthContext]) -> Optional[GatewayResult]:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_manage_users:
            logger.warning("gestión de usuarios denegada a %s (%s)", ctx.user_id, ctx.rol)
            return permission_denied(MANAGE_DENIED)
        return None

    async def _target(self, user_id: str):
        profile = await self.store.fetch_profile(user_id)
        if profile is None:
            return None, not_found("Usuario no encontrado")
        return profile, None

    async def _is_last_admin(self, profile: dict) -> GatewayResult | bool:
        if profile.get("rol") != Rol.admin.value:
            return False
        res = await self.store.count(PROFILES, {"rol": Rol.admin.value})
        if not res.ok:
            return infrastructure(res.error)
        return res.data <= 1

    async def _set_role(self, ctx: AuthContext, user_id: str, rol: Rol) -> GatewayResult:
        res = await self.store.update(PROFILES, user_id, {
            "rol": rol.value, "updated_at": datetime.now(timezone.utc),
        })
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("Usuario no encontrado o sin cambios")
        logger.info("rol de %s -> %s por %s", user_id, rol.value, ctx.user_id)
        return GatewayResult(data=res.data)

    async def approve(self, ctx: Optional[AuthContext], user_id: str, rol) -> GatewayResult:
        denied = self._check_manager(ctx)
        if denied:
            return denied
        new_rol = _assignable(rol)
        if new_rol is None:
            return validation_failed([ValidationError("rol", "Rol no asignable")])
        profile, missing = await self._target(user_id)
        if missing:
            return missing
        if profile.get("rol") != Rol.pendiente.value:
            return validation_failed([ValidationError("rol", "La cuenta ya fue aprobada")])
        return await self._set_role(ctx, user_id, new_rol)

    async def reject(self, ctx: Optional[AuthContext], user_id: str) -> GatewayResult:
        denied = self._check_manager(ctx)
        if denied:
            return denied
        profile, missing = await self._target(user_id)
        if missing:
            return missing
        if profile.get("rol") != Rol.pendiente.value:
            return validation_failed([ValidationError("rol", "Solo se pueden rechazar cuentas pendientes")])
        res = await self.store.delete_account(user_id)
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("Usuario no encontrado")
        logger.info("cuenta pendiente %s rechazada y eliminada por %s", user_id, ctx.user_id)
        return GatewayResult(data={"id": user_id})

    async def change_role(self, ctx: Optional[AuthContext], user_id: str, rol) -> GatewayResult:
        denied = self._check_manager(ctx)
        if denied:
            return denied
        new_rol = _assignable(rol)
        if new_rol is None:
            return validation_failed([ValidationError("rol", "Rol no asignable")])
        profile, missing = await self._target(user_id)
        if missing:
            return missing
        if profile.get("rol") == Rol.pendiente.value:
            return validation_failed([ValidationError("rol", "La cuenta está pendiente; apruébala primero")])
        if new_rol != Rol.admin:
            last = await self._is_last_admin(profile)
            if isinstance(last, GatewayResult):
                return last
            if last:
                return validation_failed([ValidationError("rol", "No puedes quitar el rol al último administrador")])
        return await self._set_role(ctx, user_id, new_rol)

    async def delete(self, ctx: Optional[AuthContext], user_id: str) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not ctx.capabilities.can_delete:
            return permission_denied("Solo el administrador puede eliminar usuarios")
        if user_id == ctx.user_id:
            return validation_failed([ValidationError("id", "No puedes eliminarte a ti mismo")])
        profile, missing = await self._target(user_id)
        if missing:
            return missing
        last = await self._is_last_admin(profile)
        if isinstance(last, GatewayResult):
            return last
        if last:
            return validation_failed([ValidationError("id", "No puedes eliminar al último administrador")])
        res = await self.store.delete_account(user_id)
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("Usuario no encontrado")
        logger.info("usuario %s eliminado por %s", user_id, ctx.user_id)
        return GatewayResult(data={"id": user_id})

    async def list_pending(self, ctx: Optional[AuthContext]) -> GatewayResult:
        denied = self._check_manager(ctx)
        if denied:
            return denied
        res = await self.store.query(PROFILES, {"rol": Rol.pendiente.value}, order_by="created_at", descending=True)
        if not res.ok:
            return infrastructure(res.error)
        return GatewayResult(data=res.data)

    async def list_active(self, ctx: Optional[AuthContext]) -> GatewayResult:
        denied = self._check_manager(ctx)
        if denied:
            return denied
        res = await self.store.query(PROFILES, {"rol": {"$ne": Rol.pendiente.value}},
                                     order_by="created_at", descending=True)
        if not res.ok:
            return infrastructure(res.error)
        return GatewayResult(data=res.data)

    async def update_own_name(self, ctx: Optional[AuthContext], nombre_completo) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        if not isinstance(nombre_completo, str) or len(nombre_completo.strip()) < 2:
            return validation_failed([ValidationError("nombre_completo", "Nombre requerido, mínimo 2 caracteres")])
        res = await self.store.update(PROFILES, ctx.user_id, {
            "nombre_completo": nombre_completo.strip(), "updated_at": datetime.now(timezone.utc),
        })
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("Perfil no encontrado")
        return GatewayResult(data=res.data)

    async def change_own_password(self, ctx: Optional[AuthContext], password) -> GatewayResult:
        denied = unauthenticated(ctx)
        if denied:
            return denied
        problem = password_problem(password)
        if problem:
            return validation_failed([ValidationError("password", problem)])
        res = await self.store.update(USUARIOS, ctx.user_id, {"password_hash": hash_password(password)})
        if not res.ok:
            return infrastructure(res.error)
        if not res.count:
            return not_found("Usuario no encontrado")
        return GatewayResult(data={"id": ctx.user_id})
