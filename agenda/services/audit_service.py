# agenda/services/audit_service.py
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
import math

from agenda.models.requisicion import FIELD_LABELS, CampoModificado, HistorialEntry


def to_text(value: Any) -> str:
    """Representación de texto usada para comparar y guardar en el historial.

    None (y NaN) -> "", enteros sin ".0", fechas en ISO.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return ""
        if value == value.to_integral_value():
            return str(int(value))
        return format(value.normalize(), "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def diff(old_record: Mapping[str, Any], new_values: Mapping[str, Any],
         field_labels: Optional[Mapping[str, str]] = None) -> List[CampoModificado]:
    """Campos que cambian, en el orden de las llaves de ``new_values``.

    Solo se comparan las llaves presentes en ``new_values`` (actualización
    parcial). null y "" son equivalentes y no generan cambio.
    """
    labels = FIELD_LABELS if field_labels is None else field_labels
    cambios = []
    for key, value in new_values.items():
        anterior = to_text(old_record.get(key))
        nuevo = to_text(value)
        if anterior != nuevo:
            cambios.append(CampoModificado(campo=labels.get(key, key), anterior=anterior, nuevo=nuevo))
    return cambios


def audit_rows(requisicion_id: str, cambios: List[CampoModificado], usuario_id: str,
               now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Una fila de historial por campo modificado."""
    now = now or datetime.now(timezone.utc)
    return [
        HistorialEntry(
            requisicion_id=requisicion_id,
            campo_modificado=c.campo,
            valor_anterior=c.anterior,
            valor_nuevo=c.nuevo,
            usuario_id=usuario_id,
            created_at=now,
        ).model_dump()
        for c in cambios
    ]
