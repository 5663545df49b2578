# agenda/core/indexes.py
from datetime import datetime, timezone
import logging
import uuid

from agenda.core.config import settings
from agenda.core.security import hash_password, normalize_email
from agenda.models.common import CATALOG_TABLES, HISTORIAL, PROFILES, REQUISICIONES, USUARIOS, Rol

logger = logging.getLogger(__name__)

DEFAULT_ESTATUS = [
    {"nombre": "Pendiente", "color_hex": "#F59E0B"},
    {"nombre": "Confirmado", "color_hex": "#3B82F6"},
    {"nombre": "En tránsito", "color_hex": "#8B5CF6"},
    {"nombre": "Recibido", "color_hex": "#10B981"},
    {"nombre": "Cancelado", "color_hex": "#EF4444"},
]

DEFAULT_UNIDADES = [
    {"nombre": "Kilogramos", "abreviatura": "kg"},
    {"nombre": "Litros", "abreviatura": "L"},
    {"nombre": "Piezas", "abreviatura": "pza"},
    {"nombre": "Toneladas", "abreviatura": "t"},
]


async def ensure_core_indexes(db):
    await db[USUARIOS].create_index([("id", 1)], unique=True)
    await db[USUARIOS].create_index([("email", 1)], unique=True)
    await db[PROFILES].create_index([("id", 1)], unique=True)
    await db[PROFILES].create_index([("rol", 1), ("created_at", -1)])

    await db[REQUISICIONES].create_index([("id", 1)], unique=True)
    await db[REQUISICIONES].create_index([("fecha_recepcion", 1)])
    await db[REQUISICIONES].create_index([("fecha_confirmada", 1)])
    for field in ("proveedor_id", "producto_id", "presentacion_id", "destino_id", "estatus_id", "unidad_cantidad_id"):
        await db[REQUISICIONES].create_index([(field, 1)])

    await db[HISTORIAL].create_index([("id", 1)], unique=True)
    await db[HISTORIAL].create_index([("requisicion_id", 1), ("created_at", -1)])

    for table in CATALOG_TABLES:
        await db[table].create_index([("id", 1)], unique=True)
        await db[table].create_index([("nombre", 1)])


async def seed_catalogs(db):
    now = datetime.now(timezone.utc)
    if not await db.estatus.count_documents({}):
        await db.estatus.insert_many([
            {"id": str(uuid.uuid4()), **e, "activo": True, "created_at": now} for e in DEFAULT_ESTATUS
        ])
        logger.info("seed_catalogs: %d estatus creados", len(DEFAULT_ESTATUS))
    if not await db.unidades.count_documents({}):
        await db.unidades.insert_many([
            {"id": str(uuid.uuid4()), **u, "activo": True, "created_at": now} for u in DEFAULT_UNIDADES
        ])
        logger.info("seed_catalogs: %d unidades creadas", len(DEFAULT_UNIDADES))


async def seed_admin(db):
    """Crea el primer administrador desde SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD."""
    email = normalize_email(settings.seed_admin_email)
    if not email or not settings.seed_admin_password:
        return
    if await db[PROFILES].find_one({"rol": Rol.admin.value}):
        return
    now = datetime.now(timezone.utc)
    identity = await db[USUARIOS].find_one({"email": email})
    if identity is None:
        identity = {"id": str(uuid.uuid4()), "email": email,
                    "password_hash": hash_password(settings.seed_admin_password), "created_at": now}
        await db[USUARIOS].insert_one(dict(identity))
    await db[PROFILES].update_one(
        {"id": identity["id"]},
        {"$set": {"rol": Rol.admin.value, "nombre_completo": settings.seed_admin_name, "updated_at": now},
         "$setOnInsert": {"id": identity["id"], "created_at": now}},
        upsert=True,
    )
    logger.info("seed_admin: %s es administrador", email)


async def startup_tasks(db):
    try:
        await ensure_core_indexes(db)
        await seed_catalogs(db)
        await seed_admin(db)
    except Exception as e:
        logger.exception("Error en startup_tasks: %s", e)
