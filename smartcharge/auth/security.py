import hmac
import time
from typing import Optional

import jwt

from smartcharge.core.config import Settings


def verify_device_key(presented: Optional[str], settings: Settings) -> bool:
    """Compara el secreto enviado por la estación con ``IOT_API_KEY``.

    Sin secreto configurado sólo se admite la petición fuera de producción.
    """
    expected = settings.iot_api_key
    if not expected:
        return not settings.is_production
    if not presented:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


def _make_token(sub: str, ttl: int, scope: str, settings: Settings) -> str:
    now = int(time.time())
    payload = {"sub": sub, "iat": now, "exp": now + ttl, "scope": scope}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def make_access_token(operator_id: str, settings: Settings) -> str:
    return _make_token(operator_id, settings.access_ttl, "access", settings)


def decode_token(token: str, settings: Settings) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except jwt.PyJWTError:
        return None


def verify_access_token(token: str, settings: Settings) -> Optional[str]:
    data = decode_token(token, settings)
    if not data or data.get("scope") != "access":
        return None
    return data.get("sub")
