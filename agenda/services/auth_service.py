# agenda/services/auth_service.py
from typing import Optional
import logging

from agenda.core.security import (
    create_access_token, hash_password, normalize_email, password_problem, verify_password,
)
from agenda.models.common import Rol, role_label
from agenda.models.user import Identity, Profile
from agenda.repositories.store import DUPLICATE_KEY, Store
from agenda.services.gateway import (
    AuthContext, ErrorKind, GatewayError, GatewayResult, infrastructure, validation_failed,
)
from agenda.services.requisicion_validator import ValidationError
from agenda.services.role_policy import capabilities_for

logger = logging.getLogger(__name__)


def session_payload(profile: dict) -> dict:
    rol = profile.get("rol")
    return {
        "profile": profile,
        "rol_label": role_label(rol),
        "capabilities": capabilities_for(rol).as_dict(),
    }


async def authenticate(store: Store, user_id: str) -> Optional[AuthContext]:
    """Perfil del usuario del token; None si ya no existe (p. ej. rechazado)."""
    profile = await store.fetch_profile(user_id)
    if profile is None:
        return None
    return AuthContext(user_id=profile["id"], rol=profile.get("rol"), nombre_completo=profile.get("nombre_completo"))


async def sign_up(store: Store, email, password, nombre_completo=None) -> GatewayResult:
    """Toda cuenta nueva nace en ``pendiente``; el rol lo asigna un administrador."""
    errors = []
    clean_email = normalize_email(email)
    if clean_email is None:
        errors.append(ValidationError("email", "Correo electrónico inválido"))
    problem = password_problem(password)
    if problem:
        errors.append(ValidationError("password", problem))
    if errors:
        return validation_failed(errors)

    if await store.fetch_identity(clean_email):
        return validation_failed([ValidationError("email", "El correo ya está registrado")])

    identity = Identity(email=clean_email, password_hash=hash_password(password))
    nombre = nombre_completo.strip() if isinstance(nombre_completo, str) and nombre_completo.strip() else None
    profile = Profile(id=identity.id, nombre_completo=nombre, rol=Rol.pendiente.value,
                      created_at=identity.created_at, updated_at=identity.created_at)
    res = await store.create_account(identity.model_dump(), profile.model_dump())
    if not res.ok:
        if res.error.code == DUPLICATE_KEY:
            return validation_failed([ValidationError("email", "El correo ya está registrado")])
        return infrastructure(res.error)
    logger.info("cuenta %s creada en estado pendiente", identity.id)
    return GatewayResult(data=res.data)


async def log_in(store: Store, email, password) -> GatewayResult:
    clean_email = normalize_email(email)
    identity = await store.fetch_identity(clean_email) if clean_email else None
    if not identity or not isinstance(password, str) or not verify_password(password, identity["password_hash"]):
        return GatewayResult(error=GatewayError(ErrorKind.permission, "Correo o contraseña incorrectos"))
    profile = await store.fetch_profile(identity["id"])
    if profile is None:
        return GatewayResult(error=GatewayError(ErrorKind.permission, "La cuenta no tiene perfil"))
    token = create_access_token(identity["id"])
    return GatewayResult(data={"access_token": token, "token_type": "bearer", **session_payload(profile)})
