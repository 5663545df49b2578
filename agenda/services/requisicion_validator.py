# agenda/services/requisicion_validator.py
"""
Reglas de captura de una requisición al crear o actualizar.

``validate`` es puro: recibe los catálogos y la fila existente ya cargados y
devuelve todos los errores encontrados, no solo el primero.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
import math

from agenda.models.common import CATALOG_REFERENCES
from agenda.models.requisicion import DATE_FIELDS, EDITABLE_FIELDS, REQUIRED_FIELDS, TEXT_FIELDS
from agenda.services.audit_service import to_text
from agenda.services.role_policy import capabilities_for


class Mode(str, Enum):
    create = "create"
    update = "update"


@dataclass
class ValidationError:
    field: str
    message: str


@dataclass
class ValidationOutcome:
    value: Optional[Dict[str, Any]] = None
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


REFERENCE_MESSAGES = {
    "proveedor_id": "Selecciona un proveedor",
    "producto_id": "Selecciona un producto",
    "presentacion_id": "Selecciona una presentación",
    "destino_id": "Selecciona un destino",
    "estatus_id": "Selecciona un estatus",
    "unidad_cantidad_id": "Selecciona una unidad",
}

CONFIRMED_DATE_DENIED = "Solo administración o coordinación pueden cambiar la fecha confirmada"

_NUMBER_ERROR = "Debe ser un número"


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_number(value) -> Tuple[Optional[float], Optional[str]]:
    if _blank(value):
        return None, None
    if isinstance(value, bool):
        return None, _NUMBER_ERROR
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None, _NUMBER_ERROR
    else:
        return None, _NUMBER_ERROR
    if math.isnan(number):
        # NaN llega de inputs numéricos vacíos: se guarda como ausente
        return None, None
    if math.isinf(number):
        return None, _NUMBER_ERROR
    return number, None


def _to_date(value) -> Tuple[Optional[str], Optional[str]]:
    if _blank(value):
        return None, None
    if isinstance(value, datetime):
        return value.date().isoformat(), None
    if isinstance(value, date):
        return value.isoformat(), None
    if isinstance(value, str):
        s = value.strip()
        try:
            if len(s) == 10:
                return date.fromisoformat(s).isoformat(), None
        except ValueError:
            pass
    return None, "Fecha inválida (AAAA-MM-DD)"


def _to_text_value(value) -> Tuple[Optional[str], Optional[str]]:
    if _blank(value):
        return None, None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_text(value), None
    if not isinstance(value, str):
        return None, "Debe ser texto"
    return value.strip(), None


def _to_reference(value) -> Tuple[Optional[str], Optional[str]]:
    if _blank(value):
        return None, None
    if not isinstance(value, str):
        return None, "Identificador inválido"
    return value.strip(), None


def _check_reference(key: str, ref_id: str, catalogs: Mapping[str, Mapping[str, dict]],
                     existing: Optional[Mapping[str, Any]]) -> Optional[str]:
    table = CATALOG_REFERENCES[key]
    entries = catalogs.get(table)
    if entries is None:
        return None
    entry = entries.get(ref_id)
    if entry is None:
        return "No existe en el catálogo"
    # un registro inactivo solo puede quedarse si ya estaba seleccionado
    if not entry.get("activo", True) and (existing is None or existing.get(key) != ref_id):
        return "El registro está inactivo"
    return None


def validate(data: Mapping[str, Any], mode: Mode, rol,
             catalogs: Optional[Mapping[str, Mapping[str, dict]]] = None,
             existing: Optional[Mapping[str, Any]] = None) -> ValidationOutcome:
    """Normaliza y valida ``data``.

    En ``create`` se evalúan todos los campos (los opcionales ausentes quedan en
    None); en ``update`` solo los presentes en ``data``, en su orden original.
    ``catalogs`` mapea tabla -> {id: fila}; si falta una tabla no se verifica.
    """
    if not isinstance(data, Mapping):
        return ValidationOutcome(errors=[ValidationError("_", "Se esperaba un objeto")])

    mode = Mode(mode)
    catalogs = catalogs or {}
    errors: List[ValidationError] = []
    out: Dict[str, Any] = {}

    keys = [k for k in data if k in EDITABLE_FIELDS]
    if mode == Mode.create:
        keys += [k for k in EDITABLE_FIELDS if k not in data]

    for key in keys:
        raw = data.get(key)
        if key in DATE_FIELDS:
            value, problem = _to_date(raw)
        elif key in CATALOG_REFERENCES:
            value, problem = _to_reference(raw)
        elif key in TEXT_FIELDS:
            value, problem = _to_text_value(raw)
        else:
            value, problem = _to_number(raw)

        if problem:
            errors.append(ValidationError(key, problem))
            continue

        if value is None and key in REQUIRED_FIELDS:
            if key in REFERENCE_MESSAGES:
                message = REFERENCE_MESSAGES[key]
            elif key == "fecha_recepcion":
                message = "La fecha es requerida"
            else:
                message = "La cantidad es requerida"
            errors.append(ValidationError(key, message))
            continue

        if key in CATALOG_REFERENCES:
            problem = _check_reference(key, value, catalogs, existing)
            if problem:
                errors.append(ValidationError(key, problem))
                continue

        if key == "cantidad_solicitada" and value <= 0:
            errors.append(ValidationError(key, "Debe ser mayor a 0"))
            continue

        if key == "cantidad_entregada" and value is not None and value < 0:
            errors.append(ValidationError(key, "No puede ser negativa"))
            continue

        out[key] = value

    # entregado <= solicitado, tomando lo guardado para el valor que no llega
    quantities = ("cantidad_solicitada", "cantidad_entregada")
    failed = {e.field for e in errors}
    if any(k in out for k in quantities) and not failed.intersection(quantities):
        stored = existing or {}
        solicitada = out["cantidad_solicitada"] if "cantidad_solicitada" in out else stored.get("cantidad_solicitada")
        entregada = out["cantidad_entregada"] if "cantidad_entregada" in out else stored.get("cantidad_entregada")
        if solicitada is not None and entregada is not None and float(entregada) > float(solicitada):
            if "cantidad_entregada" in out:
                errors.append(ValidationError("cantidad_entregada", "No puede superar la cantidad solicitada"))
            else:
                errors.append(ValidationError("cantidad_solicitada", "No puede ser menor que la cantidad entregada"))

    # fecha confirmada: solo roles con permiso pueden fijarla o cambiarla
    if "fecha_confirmada" in data and not capabilities_for(rol).can_edit_confirmed_date:
        before = to_text(existing.get("fecha_confirmada")) if existing else ""
        after = to_text(out.get("fecha_confirmada", data.get("fecha_confirmada")))
        if before != after:
            errors.append(ValidationError("fecha_confirmada", CONFIRMED_DATE_DENIED))

    if errors:
        return ValidationOutcome(errors=errors)
    return ValidationOutcome(value=out)
