# agenda/core/config.py
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === MongoDB ===
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "agenda_mp"
    mongo_tls: bool = False

    # === Seguridad / JWT ===
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 480

    # === Seguridad login (anti brute-force) ===
    login_rate_limit: str = "5/minute"

    # === CORS ===
    # Acepta JSON (["http://a","https://b"]) o lista separada por comas ("http://a,https://b")
    cors_origins: str = ""

    # === Historial ===
    use_transactions: bool = True
    audit_retry_seconds: int = 30

    # === Calendario ===
    upcoming_days: int = 5

    # === Primer administrador (opcional) ===
    seed_admin_email: str = ""
    seed_admin_password: str = ""
    seed_admin_name: str = "Administrador"

    log_level: str = "INFO"

    @property
    def cors_origin_list(self) -> List[str]:
        return parse_origins(self.cors_origins)


def parse_origins(v) -> List[str]:
    if v is None:
        return []
    if isinstance(v, list):
        return [str(x).strip() for x in v if str(x).strip()]
    s = str(v).strip()
    if not s:
        return []
    if s.startswith("["):
        try:
            data = json.loads(s)
            if isinstance(data, list):
                return [str(x).strip() for x in data if str(x).strip()]
        except ValueError:
            # si parece JSON pero está mal formado, caemos al split por comas
            pass
    return [item.strip() for item in s.split(",") if item.strip()]


# Instancia global usada por main.py y las dependencias
settings = Settings()
