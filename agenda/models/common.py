# agenda/models/common.py
from enum import Enum


class Rol(str, Enum):
    admin = "admin"
    coordinadora = "coordinadora"
    laboratorio = "laboratorio"
    cedis = "cedis"
    consulta = "consulta"      # deprecado: conserva lectura, ya no se asigna
    pendiente = "pendiente"    # cuenta sin aprobar


ROLE_LABELS = {
    Rol.admin: "Admin",
    Rol.coordinadora: "Coordinadora",
    Rol.laboratorio: "Laboratorio",
    Rol.cedis: "CEDIS",
    Rol.consulta: "Consulta (deprecado)",
    Rol.pendiente: "Pendiente",
}

_missing = set(Rol) - set(ROLE_LABELS)
if _missing:
    raise RuntimeError(f"Roles sin etiqueta: {sorted(r.value for r in _missing)}")

ASSIGNABLE_ROLES = (Rol.admin, Rol.coordinadora, Rol.laboratorio, Rol.cedis)


def parse_rol(value) -> Rol | None:
    if isinstance(value, Rol):
        return value
    try:
        return Rol(value)
    except (ValueError, TypeError):
        return None


def role_label(value) -> str:
    rol = parse_rol(value)
    if rol is None:
        return str(value or "")
    return ROLE_LABELS[rol]


CATALOG_TABLES = ("proveedores", "productos", "presentaciones", "destinos", "estatus", "unidades")

# campo de la requisición -> catálogo al que apunta
CATALOG_REFERENCES = {
    "proveedor_id": "proveedores",
    "producto_id": "productos",
    "presentacion_id": "presentaciones",
    "destino_id": "destinos",
    "estatus_id": "estatus",
    "unidad_cantidad_id": "unidades",
}

REQUISICIONES = "requisiciones"
HISTORIAL = "requisiciones_historial"
PROFILES = "profiles"
USUARIOS = "usuarios"

# estatus que ya no cuentan como entrega próxima
CLOSED_STATUS_NAMES = {"recibido", "cancelado"}
RECEIVED_STATUS_NAME = "Recibido"
DEFAULT_EVENT_COLOR = "#3b82f6"
