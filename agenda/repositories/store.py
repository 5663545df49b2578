# agenda/repositories/store.py
"""
Contrato con el proveedor de persistencia.

Ninguna operación lanza: todas devuelven un ``StoreResult`` con ``data`` o
``error``. ``count`` es el número de filas afectadas en update/delete; un 0
significa "no encontrado o denegado" y nunca debe leerse como éxito.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

FOREIGN_KEY_VIOLATION = "foreign_key_violation"
DUPLICATE_KEY = "duplicate_key"
TRANSACTION_UNSUPPORTED = "transaction_unsupported"
DATABASE_ERROR = "database_error"
AUDIT_FAILED = "audit_failed"


@dataclass
class StoreError:
    code: str
    message: str


@dataclass
class StoreResult:
    data: Any = None
    error: Optional[StoreError] = None
    count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Store(Protocol):
    async def fetch_profile(self, user_id: str) -> Optional[dict]: ...

    async def fetch_identity(self, email: str) -> Optional[dict]: ...

    async def query(self, table: str, filters: Optional[Dict[str, Any]] = None,
                    order_by: Optional[str] = None, descending: bool = False) -> StoreResult: ...

    async def get(self, table: str, row_id: str) -> StoreResult: ...

    async def insert(self, table: str, row: dict) -> StoreResult: ...

    async def insert_many(self, table: str, rows: List[dict]) -> StoreResult: ...

    async def update(self, table: str, row_id: str, changes: dict) -> StoreResult: ...

    async def delete(self, table: str, row_id: str) -> StoreResult: ...

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> StoreResult: ...

    async def update_with_audit(self, requisicion_id: str, changes: dict, audit_rows: List[dict]) -> StoreResult:
        """Actualiza la requisición y escribe su historial. ``data`` lleva la fila
        actualizada; si el historial no pudo escribirse, ``data`` sigue presente y
        ``error.code`` es ``audit_failed``."""
        ...

    async def delete_requisicion(self, requisicion_id: str) -> StoreResult:
        """Borra la requisición junto con su historial."""
        ...

    async def create_account(self, identity: dict, profile: dict) -> StoreResult: ...

    async def delete_account(self, user_id: str) -> StoreResult:
        """Borra identidad y perfil; no hay borrado lógico."""
        ...

