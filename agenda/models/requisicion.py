# agenda/models/requisicion.py
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional
import uuid

REQUIRED_FIELDS = (
    "fecha_recepcion",
    "proveedor_id",
    "producto_id",
    "presentacion_id",
    "destino_id",
    "estatus_id",
    "cantidad_solicitada",
    "unidad_cantidad_id",
)

OPTIONAL_FIELDS = (
    "numero_oc",
    "requisicion_numero",
    "fecha_oc",
    "fecha_solicitada_entrega",
    "fecha_confirmada",
    "fecha_entregado",
    "cantidad_entregada",
    "factura_remision",
    "comentarios",
)

EDITABLE_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS

DATE_FIELDS = ("fecha_recepcion", "fecha_oc", "fecha_solicitada_entrega", "fecha_confirmada", "fecha_entregado")
TEXT_FIELDS = ("numero_oc", "requisicion_numero", "factura_remision", "comentarios")

# etiquetas legibles para el historial
FIELD_LABELS = {
    "fecha_recepcion": "Fecha de Recepción",
    "proveedor_id": "Proveedor",
    "producto_id": "Producto",
    "presentacion_id": "Presentación",
    "destino_id": "Destino",
    "estatus_id": "Estatus",
    "cantidad_solicitada": "Cantidad Solicitada",
    "unidad_cantidad_id": "Unidad de Medida",
    "numero_oc": "Número O.C.",
    "requisicion_numero": "Número de Requisición",
    "fecha_oc": "Fecha O.C.",
    "fecha_solicitada_entrega": "Fecha Solicitada de Entrega",
    "fecha_confirmada": "Fecha Confirmada",
    "fecha_entregado": "Fecha de Entrega",
    "cantidad_entregada": "Cantidad Entregada",
    "factura_remision": "Factura / Remisión",
    "comentarios": "Comentarios",
}


def _now():
    return datetime.now(timezone.utc)


class RequisicionInDB(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    fecha_recepcion: str
    proveedor_id: str
    producto_id: str
    presentacion_id: str
    destino_id: str
    estatus_id: str
    cantidad_solicitada: float
    unidad_cantidad_id: str
    numero_oc: Optional[str] = None
    requisicion_numero: Optional[str] = None
    fecha_oc: Optional[str] = None
    fecha_solicitada_entrega: Optional[str] = None
    fecha_confirmada: Optional[str] = None
    fecha_entregado: Optional[str] = None
    cantidad_entregada: Optional[float] = None
    factura_remision: Optional[str] = None
    comentarios: Optional[str] = None
    created_by: str
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class HistorialEntry(BaseModel):
    """Fila inmutable del historial: un registro por campo modificado."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    requisicion_id: str
    campo_modificado: str
    valor_anterior: Optional[str] = None
    valor_nuevo: Optional[str] = None
    usuario_id: str
    created_at: datetime = Field(default_factory=_now)


class CampoModificado(BaseModel):
    campo: str
    anterior: str
    nuevo: str


def cantidad_pendiente(doc: dict) -> float:
    """Solicitado menos entregado; nunca negativo."""
    solicitada = doc.get("cantidad_solicitada") or 0
    entregada = doc.get("cantidad_entregada") or 0
    return max(float(solicitada) - float(entregada), 0.0)
