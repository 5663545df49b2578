# agenda/services/audit_outbox.py
import asyncio
import logging
from collections import deque
from typing import Deque, List

from agenda.models.common import HISTORIAL
from agenda.repositories.store import DUPLICATE_KEY, Store

logger = logging.getLogger(__name__)


class AuditOutbox:
    """Filas de historial que no pudieron escribirse junto con su actualización.

    Se reintentan con entrega al-menos-una-vez; cada fila lleva su ``id`` y un
    duplicado en el reintento se da por escrito.
    """

    def __init__(self):
        self._pending: Deque[dict] = deque()

    def enqueue(self, rows: List[dict]) -> None:
        self._pending.extend(rows)
        logger.warning("historial pendiente: %d filas en cola (total=%d)", len(rows), len(self._pending))

    def pending(self, requisicion_id: str | None = None) -> List[dict]:
        if requisicion_id is None:
            return list(self._pending)
        return [r for r in self._pending if r["requisicion_id"] == requisicion_id]

    def __len__(self) -> int:
        return len(self._pending)

    async def flush(self, store: Store) -> int:
        written = 0
        for _ in range(len(self._pending)):
            row = self._pending.popleft()
            res = await store.insert(HISTORIAL, row)
            if res.ok or res.error.code == DUPLICATE_KEY:
                written += 1
            else:
                self._pending.append(row)
        if written:
            logger.info("historial pendiente: %d filas escritas, quedan %d", written, len(self._pending))
        return written


audit_outbox = AuditOutbox()


async def flush_forever(store_factory, interval_seconds: int, outbox: AuditOutbox = audit_outbox):
    while True:
        await asyncio.sleep(interval_seconds)
        if not len(outbox):
            continue
        try:
            await outbox.flush(store_factory())
        except Exception:
            logger.exception("Error al reintentar el historial pendiente")
