# agenda/core/security.py
from datetime import datetime, timedelta, timezone
import re

import jwt
from passlib.context import CryptContext

from agenda.core.config import settings

MIN_PASSWORD_LENGTH = 6
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def password_problem(password) -> str | None:
    """Devuelve el motivo por el que la contraseña no es aceptable, o None."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return f"Mínimo {MIN_PASSWORD_LENGTH} caracteres"
    return None


def normalize_email(email) -> str | None:
    if not isinstance(email, str):
        return None
    email = email.strip().lower()
    return email if EMAIL_RE.match(email) else None


def create_access_token(user_id: str, minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=minutes or settings.access_token_expire_minutes)
    return jwt.encode({"sub": user_id, "iat": now, "exp": expire}, settings.secret_key, algorithm=settings.algorithm)


def user_id_from_token(token: str) -> str:
    """Valida firma y expiración; lanza jwt.InvalidTokenError si no sirve."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    sub = payload.get("sub")
    if not sub:
        raise jwt.InvalidTokenError("token sin sujeto")
    return sub
