# agenda/models/catalogo.py
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional
import uuid


class CatalogEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    nombre: str
    activo: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    # solo productos
    descripcion: Optional[str] = None
    # solo estatus
    color_hex: Optional[str] = None
    # solo unidades
    abreviatura: Optional[str] = None


class ActivoPayload(BaseModel):
    activo: bool


# campos extra que acepta cada catálogo además de nombre/activo
EXTRA_FIELDS = {
    "proveedores": (),
    "productos": ("descripcion",),
    "presentaciones": (),
    "destinos": (),
    "estatus": ("color_hex",),
    "unidades": ("abreviatura",),
}
