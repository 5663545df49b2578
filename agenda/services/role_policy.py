# agenda/services/role_policy.py
"""
Matriz rol -> capacidades. Es la única fuente de verdad para los permisos;
las capacidades nunca se guardan ni se sobreescriben por usuario.
"""
from dataclasses import dataclass, asdict

from agenda.models.common import Rol, parse_rol


@dataclass(frozen=True)
class Capabilities:
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_access_admin: bool = False
    can_view_only: bool = False
    can_edit_confirmed_date: bool = False

    @property
    def can_manage_users(self) -> bool:
        return self.can_access_admin

    @property
    def can_read(self) -> bool:
        # cualquier rol operativo puede consultar; pendiente no
        return any(asdict(self).values())

    def as_dict(self) -> dict:
        return asdict(self)


NO_CAPABILITIES = Capabilities()

_VIEW_ONLY = Capabilities(can_view_only=True)

POLICY = {
    Rol.admin: Capabilities(
        can_create=True, can_edit=True, can_delete=True,
        can_access_admin=True, can_edit_confirmed_date=True,
    ),
    Rol.coordinadora: Capabilities(
        can_create=True, can_edit=True,
        can_access_admin=True, can_edit_confirmed_date=True,
    ),
    Rol.laboratorio: _VIEW_ONLY,
    Rol.cedis: _VIEW_ONLY,
    Rol.consulta: _VIEW_ONLY,
    Rol.pendiente: NO_CAPABILITIES,
}

if set(POLICY) != set(Rol):
    raise RuntimeError("La matriz de permisos no cubre todos los roles")


def capabilities_for(rol) -> Capabilities:
    """Función total: un rol nulo o desconocido no recibe ninguna capacidad."""
    parsed = parse_rol(rol)
    if parsed is None:
        return NO_CAPABILITIES
    return POLICY[parsed]
