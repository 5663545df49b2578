# agenda/repositories/mongo_store.py
import logging
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from agenda.core.config import settings
from agenda.core.db import get_client, get_db
from agenda.models.common import CATALOG_REFERENCES, HISTORIAL, PROFILES, REQUISICIONES, USUARIOS
from agenda.repositories.store import (
    AUDIT_FAILED, DATABASE_ERROR, DUPLICATE_KEY, FOREIGN_KEY_VIOLATION, TRANSACTION_UNSUPPORTED,
    StoreError, StoreResult,
)

logger = logging.getLogger(__name__)

PROJECTION = {"_id": 0}


class _NoRows(Exception):
    pass


def _transactions_unsupported(exc: Exception) -> bool:
    # standalone mongod: "Transaction numbers are only allowed on a replica set member or mongos"
    return isinstance(exc, OperationFailure) and (exc.code == 20 or "Transaction numbers" in str(exc))


def _store_error(exc: Exception) -> StoreError:
    if isinstance(exc, DuplicateKeyError):
        return StoreError(DUPLICATE_KEY, str(exc))
    if _transactions_unsupported(exc):
        return StoreError(TRANSACTION_UNSUPPORTED, str(exc))
    return StoreError(DATABASE_ERROR, str(exc))


def _references_to(table: str) -> List[str]:
    return [field for field, target in CATALOG_REFERENCES.items() if target == table]


class MongoStore:
    """Store sobre MongoDB (Motor). Las tablas son colecciones con un campo ``id`` propio."""

    def __init__(self, db=None, client=None, use_transactions: Optional[bool] = None):
        self.db = db if db is not None else get_db()
        self.client = client if client is not None else get_client()
        self.use_transactions = settings.use_transactions if use_transactions is None else use_transactions

    # ---------- identidad ----------
    async def fetch_profile(self, user_id: str) -> Optional[dict]:
        return await self.db[PROFILES].find_one({"id": user_id}, PROJECTION)

    async def fetch_identity(self, email: str) -> Optional[dict]:
        return await self.db[USUARIOS].find_one({"email": email}, PROJECTION)

    # ---------- genéricas ----------
    async def query(self, table: str, filters: Optional[Dict[str, Any]] = None,
                    order_by: Optional[str] = None, descending: bool = False) -> StoreResult:
        try:
            cur = self.db[table].find(filters or {}, PROJECTION)
            if order_by:
                cur = cur.sort(order_by, DESCENDING if descending else ASCENDING)
            return StoreResult(data=await cur.to_list(length=None))
        except PyMongoError as e:
            logger.exception("query %s falló", table)
            return StoreResult(error=_store_error(e))

    async def get(self, table: str, row_id: str) -> StoreResult:
        try:
            doc = await self.db[table].find_one({"id": row_id}, PROJECTION)
        except PyMongoError as e:
            logger.exception("get %s/%s falló", table, row_id)
            return StoreResult(error=_store_error(e))
        return StoreResult(data=doc, count=1 if doc else 0)

    async def insert(self, table: str, row: dict) -> StoreResult:
        try:
            await self.db[table].insert_one(dict(row))
        except PyMongoError as e:
            logger.exception("insert en %s falló", table)
            return StoreResult(error=_store_error(e))
        return StoreResult(data=dict(row), count=1)

    async def insert_many(self, table: str, rows: List[dict]) -> StoreResult:
        if not rows:
            return StoreResult(data=[], count=0)
        try:
            await self.db[table].insert_many([dict(r) for r in rows])
        except PyMongoError as e:
            logger.exception("insert_many en %s falló", table)
            return StoreResult(error=_store_error(e))
        return StoreResult(data=[dict(r) for r in rows], count=len(rows))

    async def update(self, table: str, row_id: str, changes: dict) -> StoreResult:
        try:
            res = await self.db[table].update_one({"id": row_id}, {"$set": changes})
            if res.matched_count == 0:
                return StoreResult(count=0)
            doc = await self.db[table].find_one({"id": row_id}, PROJECTION)
        except PyMongoError as e:
            logger.exception("update %s/%s falló", table, row_id)
            return StoreResult(error=_store_error(e))
        return StoreResult(data=doc, count=res.matched_count)

    async def delete(self, table: str, row_id: str) -> StoreResult:
        try:
            # Mongo no tiene llaves foráneas: se revisan a mano
            for field in _references_to(table):
                if await self.db[REQUISICIONES].count_documents({field: row_id}, limit=1):
                    return StoreResult(error=StoreError(
                        FOREIGN_KEY_VIOLATION, f"{table}.{row_id} referenciado por requisiciones.{field}"))
            res = await self.db[table].delete_one({"id": row_id})
        except PyMongoError as e:
            logger.exception("delete %s/%s falló", table, row_id)
            return StoreResult(error=_store_error(e))
        return StoreResult(count=res.deleted_count)

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> StoreResult:
        try:
            return StoreResult(data=await self.db[table].count_documents(filters or {}))
        except PyMongoError as e:
            logger.exception("count %s falló", table)
            return StoreResult(error=_store_error(e))

    # ---------- escrituras compuestas ----------
    async def update_with_audit(self, requisicion_id: str, changes: dict, audit_rows: List[dict]) -> StoreResult:
        if self.use_transactions:
            try:
                async with await self.client.start_session() as session:
                    async with session.start_transaction():
                        res = await self.db[REQUISICIONES].update_one(
                            {"id": requisicion_id}, {"$set": changes}, session=session)
                        if res.matched_count == 0:
                            raise _NoRows()
                        if audit_rows:
                            await self.db[HISTORIAL].insert_many([dict(r) for r in audit_rows], session=session)
                        doc = await self.db[REQUISICIONES].find_one({"id": requisicion_id}, PROJECTION, session=session)
                return StoreResult(data=doc, count=1)
            except _NoRows:
                return StoreResult(count=0)
            except PyMongoError as e:
                if not _transactions_unsupported(e):
                    logger.exception("update_with_audit %s falló", requisicion_id)
                    return StoreResult(error=_store_error(e))
                logger.warning("El servidor Mongo no admite transacciones; se escribe en dos pasos")
                self.use_transactions = False

        updated = await self.update(REQUISICIONES, requisicion_id, changes)
        if not updated.ok or not updated.count:
            return updated
        written = await self.insert_many(HISTORIAL, audit_rows)
        if not written.ok:
            return StoreResult(data=updated.data, count=updated.count,
                               error=StoreError(AUDIT_FAILED, written.error.message))
        return updated

    async def delete_requisicion(self, requisicion_id: str) -> StoreResult:
        if self.use_transactions:
            try:
                async with await self.client.start_session() as session:
                    async with session.start_transaction():
                        await self.db[HISTORIAL].delete_many({"requisicion_id": requisicion_id}, session=session)
                        res = await self.db[REQUISICIONES].delete_one({"id": requisicion_id}, session=session)
                        if res.deleted_count == 0:
                            raise _NoRows()
                return StoreResult(count=res.deleted_count)
            except _NoRows:
                return StoreResult(count=0)
            except PyMongoError as e:
                if not _transactions_unsupported(e):
                    logger.exception("delete_requisicion %s falló", requisicion_id)
                    return StoreResult(error=_store_error(e))
                logger.warning("El servidor Mongo no admite transacciones; se borra en dos pasos")
                self.use_transactions = False

        try:
            # historial primero
            await self.db[HISTORIAL].delete_many({"requisicion_id": requisicion_id})
            res = await self.db[REQUISICIONES].delete_one({"id": requisicion_id})
        except PyMongoError as e:
            logger.exception("delete_requisicion %s falló", requisicion_id)
            return StoreResult(error=_store_error(e))
        return StoreResult(count=res.deleted_count)

    async def create_account(self, identity: dict, profile: dict) -> StoreResult:
        try:
            await self.db[USUARIOS].insert_one(dict(identity))
        except PyMongoError as e:
            return StoreResult(error=_store_error(e))
        try:
            await self.db[PROFILES].insert_one(dict(profile))
        except PyMongoError as e:
            logger.exception("No se pudo crear el perfil de %s; se revierte la identidad", identity["id"])
            await self.db[USUARIOS].delete_one({"id": identity["id"]})
            return StoreResult(error=_store_error(e))
        return StoreResult(data=dict(profile), count=1)

    async def delete_account(self, user_id: str) -> StoreResult:
        try:
            prof = await self.db[PROFILES].delete_one({"id": user_id})
            ident = await self.db[USUARIOS].delete_one({"id": user_id})
        except PyMongoError as e:
            logger.exception("delete_account %s falló", user_id)
            return StoreResult(error=_store_error(e))
        return StoreResult(count=max(prof.deleted_count, ident.deleted_count))
