from functools import lru_cache
from pydantic import BaseModel
import os
from zoneinfo import ZoneInfo
from dotenv import load_dotenv
load_dotenv()  # carga el archivo .env de la raíz

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

class Settings(BaseModel):
    app_name: str = os.getenv("APP_NAME", "CareConnect")
    env: str = os.getenv("APP_ENV", "dev")
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name: str = os.getenv("DB_NAME", "careconnect")
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expires_hours: int = int(os.getenv("JWT_EXPIRES_HOURS", "8"))
    frontend_base_url: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Reservas
    timezone: str = os.getenv("TIMEZONE", "Africa/Cairo")
    currency: str = os.getenv("CURRENCY", "EGP")
    extra_dependent_rate: float = float(os.getenv("EXTRA_DEPENDENT_RATE", "20"))

    # Verificación en sitio (QR)
    token_prefix: str = os.getenv("TOKEN_PREFIX", "KHMVP-VERIFY")
    legacy_token_prefix: str = os.getenv("LEGACY_TOKEN_PREFIX", "KHMVP-BOOKING")
    accept_legacy_tokens: bool = _env_bool("ACCEPT_LEGACY_TOKENS", "true")

    # Colaborador de pagos
    payment_webhook_secret: str = os.getenv("PAYMENT_WEBHOOK_SECRET", "change-me-too")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    if settings.extra_dependent_rate < 0:
        raise ValueError(f"EXTRA_DEPENDENT_RATE debe ser >= 0, recibido {settings.extra_dependent_rate}")
    if not settings.token_prefix or ":" in settings.token_prefix:
        raise ValueError(f"TOKEN_PREFIX inválido: {settings.token_prefix!r}")
    if not settings.legacy_token_prefix or ":" in settings.legacy_token_prefix:
        raise ValueError(f"LEGACY_TOKEN_PREFIX inválido: {settings.legacy_token_prefix!r}")
    ZoneInfo(settings.timezone)  # falla pronto si la zona no existe
    return settings
