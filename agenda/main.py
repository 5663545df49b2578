# agenda/main.py
import asyncio
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from agenda.api.deps import get_store
from agenda.api.router import api_router
from agenda.core.config import settings
from agenda.core.db import close_db, get_db
from agenda.core.indexes import startup_tasks
from agenda.core.rate_limit import limiter
from agenda.services.audit_outbox import flush_forever

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

APP_NAME = os.getenv("APP_NAME", "Agenda de Materia Prima")
APP_VERSION = os.getenv("APP_VERSION", "0.1.0")

# --- CORS: fusiona .env + defaults de desarrollo ---
defaults = {
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
}
CORS_ORIGINS = sorted(set(settings.cors_origin_list) | defaults)

app = FastAPI(title=APP_NAME, version=APP_VERSION)

# --- CORS primero ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)

# SlowAPI: límite en login y registro
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(api_router, prefix="")

_outbox_task: asyncio.Task | None = None


@app.get("/health")
async def health():
    return {"ok": True}


@app.on_event("startup")
async def startup():
    global _outbox_task
    await startup_tasks(get_db())
    _outbox_task = asyncio.create_task(flush_forever(get_store, settings.audit_retry_seconds))
    logger.info("%s %s listo", APP_NAME, APP_VERSION)


@app.on_event("shutdown")
async def shutdown():
    if _outbox_task:
        _outbox_task.cancel()
    await close_db()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agenda.main:app", reload=True, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
