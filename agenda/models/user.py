# agenda/models/user.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from typing import Optional
import uuid

from agenda.models.common import Rol


class Profile(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    nombre_completo: Optional[str] = None
    rol: Rol = Rol.pendiente
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Identity(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: str
    password_hash: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SignUp(BaseModel):
    email: str
    password: str
    nombre_completo: Optional[str] = None


class Login(BaseModel):
    email: str
    password: str


class RolePayload(BaseModel):
    rol: str


class ProfileUpdate(BaseModel):
    nombre_completo: str


class PasswordChange(BaseModel):
    password: str
