import asyncio
import os
from collections import defaultdict
from datetime import datetime, timezone

import pytest

# Configura las variables requeridas antes de importar el backend.
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017/test")
os.environ.setdefault("DB_NAME", "test_db")
os.environ.setdefault("SECRET_KEY", "test-secret")

from agenda.models.common import CATALOG_REFERENCES, HISTORIAL, PROFILES, REQUISICIONES, USUARIOS, Rol  # noqa: E402
from agenda.repositories.store import (  # noqa: E402
    AUDIT_FAILED, DUPLICATE_KEY, FOREIGN_KEY_VIOLATION, StoreError, StoreResult,
)
from agenda.services.gateway import AuthContext  # noqa: E402


def _matches(row, filters):
    for key, cond in (filters or {}).items():
        value = row.get(key)
        if isinstance(cond, dict):
            for op, arg in cond.items():
                if op == "$gte" and not (value is not None and value >= arg):
                    return False
                if op == "$lte" and not (value is not None and value <= arg):
                    return False
                if op == "$ne" and value == arg:
                    return False
                if op == "$in" and value not in arg:
                    return False
        elif value != cond:
            return False
    return True


class InMemoryStore:
    """Store en memoria con registro de llamadas y fallas inyectables."""

    def __init__(self):
        self.tables = defaultdict(dict)
        self.calls = []
        self.fail = {}           # nombre de método -> StoreError
        self.fail_audit = False  # simula que el historial no se pudo escribir

    def _enter(self, name, *args):
        self.calls.append((name,) + args)
        return self.fail.get(name)

    def seed(self, table, *rows):
        for row in rows:
            self.tables[table][row["id"]] = dict(row)

    def rows(self, table):
        return list(self.tables[table].values())

    async def fetch_profile(self, user_id):
        self._enter("fetch_profile", user_id)
        row = self.tables[PROFILES].get(user_id)
        return dict(row) if row else None

    async def fetch_identity(self, email):
        self._enter("fetch_identity", email)
        for row in self.tables[USUARIOS].values():
            if row["email"] == email:
                return dict(row)
        return None

    async def query(self, table, filters=None, order_by=None, descending=False):
        err = self._enter("query", table, filters)
        if err:
            return StoreResult(error=err)
        data = [dict(r) for r in self.tables[table].values() if _matches(r, filters)]
        if order_by:
            data.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""), reverse=descending)
        return StoreResult(data=data)

    async def get(self, table, row_id):
        err = self._enter("get", table, row_id)
        if err:
            return StoreResult(error=err)
        row = self.tables[table].get(row_id)
        return StoreResult(data=dict(row) if row else None, count=1 if row else 0)

    async def insert(self, table, row):
        err = self._enter("insert", table, row)
        if err:
            return StoreResult(error=err)
        if row["id"] in self.tables[table]:
            return StoreResult(error=StoreError(DUPLICATE_KEY, "duplicado"))
        self.tables[table][row["id"]] = dict(row)
        return StoreResult(data=dict(row), count=1)

    async def insert_many(self, table, rows):
        err = self._enter("insert_many", table, rows)
        if err:
            return StoreResult(error=err)
        for row in rows:
            self.tables[table][row["id"]] = dict(row)
        return StoreResult(data=[dict(r) for r in rows], count=len(rows))

    async def update(self, table, row_id, changes):
        err = self._enter("update", table, row_id, changes)
        if err:
            return StoreResult(error=err)
        row = self.tables[table].get(row_id)
        if row is None:
            return StoreResult(count=0)
        row.update(changes)
        return StoreResult(data=dict(row), count=1)

    async def delete(self, table, row_id):
        err = self._enter("delete", table, row_id)
        if err:
            return StoreResult(error=err)
        for field, target in CATALOG_REFERENCES.items():
            if target == table and any(r.get(field) == row_id for r in self.tables[REQUISICIONES].values()):
                return StoreResult(error=StoreError(FOREIGN_KEY_VIOLATION, "referenciado"))
        removed = self.tables[table].pop(row_id, None)
        return StoreResult(count=1 if removed else 0)

    async def count(self, table, filters=None):
        err = self._enter("count", table, filters)
        if err:
            return StoreResult(error=err)
        return StoreResult(data=sum(1 for r in self.tables[table].values() if _matches(r, filters)))

    async def update_with_audit(self, requisicion_id, changes, audit_rows):
        err = self._enter("update_with_audit", requisicion_id, changes, audit_rows)
        if err:
            return StoreResult(error=err)
        row = self.tables[REQUISICIONES].get(requisicion_id)
        if row is None:
            return StoreResult(count=0)
        row.update(changes)
        if self.fail_audit:
            return StoreResult(data=dict(row), count=1, error=StoreError(AUDIT_FAILED, "historial caído"))
        for audit in audit_rows:
            self.tables[HISTORIAL][audit["id"]] = dict(audit)
        return StoreResult(data=dict(row), count=1)

    async def delete_requisicion(self, requisicion_id):
        err = self._enter("delete_requisicion", requisicion_id)
        if err:
            return StoreResult(error=err)
        for hid in [h["id"] for h in self.tables[HISTORIAL].values() if h["requisicion_id"] == requisicion_id]:
            del self.tables[HISTORIAL][hid]
        removed = self.tables[REQUISICIONES].pop(requisicion_id, None)
        return StoreResult(count=1 if removed else 0)

    async def create_account(self, identity, profile):
        err = self._enter("create_account", identity["id"])
        if err:
            return StoreResult(error=err)
        self.tables[USUARIOS][identity["id"]] = dict(identity)
        self.tables[PROFILES][profile["id"]] = dict(profile)
        return StoreResult(data=dict(profile), count=1)

    async def delete_account(self, user_id):
        err = self._enter("delete_account", user_id)
        if err:
            return StoreResult(error=err)
        prof = self.tables[PROFILES].pop(user_id, None)
        ident = self.tables[USUARIOS].pop(user_id, None)
        return StoreResult(count=1 if (prof or ident) else 0)


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def profile(user_id, rol, nombre=None):
    return {"id": user_id, "nombre_completo": nombre or user_id, "rol": rol,
            "created_at": NOW, "updated_at": NOW}


def requisicion(req_id="req-1", **overrides):
    row = {
        "id": req_id,
        "fecha_recepcion": "2026-03-10",
        "proveedor_id": "prov-1",
        "producto_id": "prod-1",
        "presentacion_id": "pres-1",
        "destino_id": "dest-1",
        "estatus_id": "est-pend",
        "cantidad_solicitada": 100.0,
        "unidad_cantidad_id": "uni-kg",
        "numero_oc": "OC-1",
        "requisicion_numero": None,
        "fecha_oc": None,
        "fecha_solicitada_entrega": None,
        "fecha_confirmada": None,
        "fecha_entregado": None,
        "cantidad_entregada": None,
        "factura_remision": None,
        "comentarios": None,
        "created_by": "u-admin",
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


VALID_INPUT = {
    "fecha_recepcion": "2026-03-10",
    "proveedor_id": "prov-1",
    "producto_id": "prod-1",
    "presentacion_id": "pres-1",
    "destino_id": "dest-1",
    "estatus_id": "est-pend",
    "cantidad_solicitada": 100,
    "unidad_cantidad_id": "uni-kg",
}


@pytest.fixture
def store():
    s = InMemoryStore()
    s.seed("proveedores",
           {"id": "prov-1", "nombre": "Químicos del Norte", "activo": True},
           {"id": "prov-2", "nombre": "Envases MX", "activo": True},
           {"id": "prov-old", "nombre": "Proveedor Viejo", "activo": False})
    s.seed("productos", {"id": "prod-1", "nombre": "Glicerina", "activo": True})
    s.seed("presentaciones", {"id": "pres-1", "nombre": "Tambor", "activo": True})
    s.seed("destinos", {"id": "dest-1", "nombre": "Planta 1", "activo": True})
    s.seed("estatus",
           {"id": "est-pend", "nombre": "Pendiente", "color_hex": "#F59E0B", "activo": True},
           {"id": "est-rec", "nombre": "Recibido", "color_hex": "#10B981", "activo": True},
           {"id": "est-canc", "nombre": "Cancelado", "color_hex": "#EF4444", "activo": True})
    s.seed("unidades", {"id": "uni-kg", "nombre": "Kilogramos", "abreviatura": "kg", "activo": True})
    s.seed(PROFILES,
           profile("u-admin", "admin", "Ana Admin"),
           profile("u-coord", "coordinadora", "Carla Coordinadora"),
           profile("u-lab", "laboratorio"),
           profile("u-cedis", "cedis"),
           profile("u-pend", "pendiente"))
    s.calls.clear()
    return s


def ctx_for(rol, user_id=None):
    return AuthContext(user_id=user_id or f"u-{rol}", rol=rol)


@pytest.fixture
def admin():
    return AuthContext(user_id="u-admin", rol=Rol.admin.value, nombre_completo="Ana Admin")


@pytest.fixture
def coordinadora():
    return AuthContext(user_id="u-coord", rol=Rol.coordinadora.value)


@pytest.fixture
def laboratorio():
    return AuthContext(user_id="u-lab", rol=Rol.laboratorio.value)


@pytest.fixture
def cedis():
    return AuthContext(user_id="u-cedis", rol=Rol.cedis.value)


def run(coro):
    return asyncio.run(coro)
