# agenda/api/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, Request as FastAPIRequest

from agenda.api.deps import get_auth_context, get_store, unwrap
from agenda.core.rate_limit import limiter, AUTH_LIMIT
from agenda.models.user import Login, SignUp
from agenda.services import auth_service
from agenda.services.gateway import ErrorKind

router = APIRouter(prefix="/auth")


@router.post("/signup", status_code=201)
@limiter.limit(AUTH_LIMIT)
async def signup(request: FastAPIRequest, payload: SignUp, store=Depends(get_store)):
    result = await auth_service.sign_up(store, payload.email, payload.password, payload.nombre_completo)
    profile = unwrap(result)
    return auth_service.session_payload(profile)


@router.post("/login")
@limiter.limit(AUTH_LIMIT)
async def login(request: FastAPIRequest, payload: Login, store=Depends(get_store)):
    result = await auth_service.log_in(store, payload.email, payload.password)
    if result.error and result.error.kind == ErrorKind.permission:
        # credenciales: 401, no 403
        raise HTTPException(401, result.error.message)
    return unwrap(result)


@router.get("/me")
async def me(ctx=Depends(get_auth_context), store=Depends(get_store)):
    profile = await store.fetch_profile(ctx.user_id)
    if profile is None:
        raise HTTPException(401, "Usuario no encontrado")
    return auth_service.session_payload(profile)
