import os
from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import quote_plus

from dotenv import load_dotenv

# Carga variables desde .env si está presente
load_dotenv()

NON_PRODUCTION_ENVS = ("development", "dev", "test", "local")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _build_mongo_uri() -> Optional[str]:
    """URI remota; permitimos construirla desde componentes para manejar passwords con encoding."""
    uri = os.getenv("MONGO_URI")
    if uri:
        return uri
    user = os.getenv("MONGO_USER")
    password = os.getenv("MONGO_PASSWORD")
    host = os.getenv("MONGO_HOST")
    if not (user and password and host):
        return None
    params = os.getenv("MONGO_OPTIONS", "retryWrites=true&w=majority")
    app_name = os.getenv("MONGO_APP_NAME")
    if app_name:
        params += f"&appName={quote_plus(app_name)}"
    auth_source = os.getenv("MONGO_AUTH_SOURCE")
    if auth_source:
        params += f"&authSource={quote_plus(auth_source)}"
    return f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{host}/?{params}"


@dataclass(frozen=True)
class Settings:
    mongo_uri: Optional[str] = None
    db_name: str = "smartcharge"
    app_env: str = "production"
    iot_api_key: Optional[str] = None
    jwt_secret: str = "change-me-please"
    jwt_alg: str = "HS256"
    access_ttl: int = 900
    auth_required: bool = True
    log_level: str = "WARNING"
    access_log_disabled: bool = True
    cors_origins: Tuple[str, ...] = field(default_factory=tuple)
    report_interval_ms: int = 5000
    command_history_limit: int = 20
    reservation_lock_timeout: float = 5.0
    reservation_lock_lease: float = 30.0

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() not in NON_PRODUCTION_ENVS

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "")
        return cls(
            mongo_uri=_build_mongo_uri(),
            db_name=os.getenv("DB_NAME", "smartcharge"),
            app_env=os.getenv("APP_ENV", "production"),
            iot_api_key=os.getenv("IOT_API_KEY") or None,
            jwt_secret=os.getenv("JWT_SECRET", "change-me-please"),
            jwt_alg=os.getenv("JWT_ALG", "HS256"),
            access_ttl=int(os.getenv("JWT_ACCESS_TTL", "900")),  # 15min
            auth_required=_env_bool("AUTH_REQUIRED", "true"),
            log_level=os.getenv("LOG_LEVEL", "WARNING").upper(),
            access_log_disabled=_env_bool("ACCESS_LOG_DISABLED", "true"),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            report_interval_ms=int(os.getenv("REPORT_INTERVAL_MS", "5000")),
            command_history_limit=int(os.getenv("COMMAND_HISTORY_LIMIT", "20")),
            reservation_lock_timeout=float(os.getenv("RESERVATION_LOCK_TIMEOUT", "5")),
            reservation_lock_lease=float(os.getenv("RESERVATION_LOCK_LEASE", "30")),
        )
