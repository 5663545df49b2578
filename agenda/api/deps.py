# agenda/api/deps.py
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt

from agenda.core.security import user_id_from_token
from agenda.repositories.mongo_store import MongoStore
from agenda.repositories.store import Store
from agenda.services.auth_service import authenticate
from agenda.services.gateway import AuthContext, GatewayResult, ErrorKind

security = HTTPBearer()

_store: MongoStore | None = None


def get_store() -> Store:
    global _store
    if _store is None:
        _store = MongoStore()
    return _store


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    store: Store = Depends(get_store),
) -> AuthContext:
    try:
        user_id = user_id_from_token(credentials.credentials)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Credenciales inválidas")

    ctx = await authenticate(store, user_id)
    if ctx is None:
        raise HTTPException(status_code=401, detail="Usuario no encontrado")
    return ctx


STATUS_BY_KIND = {
    ErrorKind.permission: 403,
    ErrorKind.validation: 422,
    ErrorKind.not_found: 404,
    ErrorKind.infrastructure: 502,
}


def unwrap(result: GatewayResult):
    """Convierte el resultado del gateway en respuesta o HTTPException."""
    if result.ok:
        return result.data
    err = result.error
    detail = {"kind": err.kind.value, "message": err.message}
    if err.fields:
        detail["fields"] = [{"field": f.field, "message": f.message} for f in err.fields]
    if err.detail:
        detail["detail"] = err.detail
    raise HTTPException(status_code=STATUS_BY_KIND[err.kind], detail=detail)
