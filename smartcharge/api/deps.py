import json
import logging
from typing import Any, Optional

from fastapi import Header, Request
from pymongo.database import Database

from smartcharge.auth.security import verify_access_token, verify_device_key
from smartcharge.core.config import Settings
from smartcharge.core.errors import AuthenticationFailure, ValidationFailure
from smartcharge.models.parsing import FieldProblem

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_device(request: Request, x_api_key: Optional[str] = Header(None)) -> None:
    """Puerta de autenticidad del dispositivo; corre antes de parsear path y body."""
    if not verify_device_key(x_api_key, get_settings(request)):
        logger.warning("API key inválida desde %s en %s", request.client.host if request.client else "?", request.url.path)
        raise AuthenticationFailure()


def require_operator(request: Request) -> Optional[str]:
    settings = get_settings(request)
    if not settings.auth_required:
        return None
    token = request.cookies.get("access_token")
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
    uid = verify_access_token(token or "", settings)
    if not uid:
        raise AuthenticationFailure("No autenticado")
    return uid


async def read_json(request: Request) -> Any:
    """Body JSON crudo; vacío → None, JSON mal formado → ValidationFailure."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ValidationFailure(details=[FieldProblem("$", "json_invalid", str(exc))])
