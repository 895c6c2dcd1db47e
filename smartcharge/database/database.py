from datetime import datetime, timedelta, timezone
from contextlib import contextmanager
import logging
import time
from typing import Iterator, Optional
from uuid import uuid4

import certifi
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from smartcharge.core.config import Settings
from smartcharge.core.errors import NotFound

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Hora UTC sin tzinfo, el formato en que Mongo devuelve las fechas."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_client(settings: Settings) -> MongoClient:
    """Crea el cliente y valida la conexión. El llamador es dueño del cliente y lo cierra."""
    if not settings.mongo_uri:
        raise RuntimeError(
            "MONGO_URI no está configurada y faltan MONGO_USER/MONGO_PASSWORD/MONGO_HOST en .env"
        )
    kwargs = {"serverSelectionTimeoutMS": 5000}
    if settings.mongo_uri.startswith("mongodb+srv://") or "tls=true" in settings.mongo_uri:
        kwargs["tlsCAFile"] = certifi.where()  # asegura cadena de certificados válida para Atlas
    client = MongoClient(settings.mongo_uri, **kwargs)
    try:
        client.admin.command("ping")
    except Exception as e:
        client.close()
        raise RuntimeError(f"No se pudo conectar a MongoDB con la URI proporcionada: {e}") from e
    return client


def ensure_indexes(db: Database) -> None:
    db.telemetry.create_index([("station_id", ASCENDING), ("timestamp", ASCENDING)])
    db.commands.create_index(
        [("station_id", ASCENDING), ("status", ASCENDING), ("created_at", ASCENDING), ("_id", ASCENDING)]
    )
    db.reservations.create_index([("station_id", ASCENDING), ("status", ASCENDING), ("start_time", ASCENDING)])
    db.reservations.create_index([("user_id", ASCENDING), ("start_time", DESCENDING)])
    db.locks.create_index("expires_at")


# ==========================================
# Registro de estaciones y usuarios (colaboradores externos)
# ==========================================

def get_station(db: Database, station_id: int) -> Optional[dict]:
    return db.stations.find_one({"_id": station_id})


def require_station(db: Database, station_id: int) -> dict:
    station = get_station(db, station_id)
    if station is None:
        raise NotFound("Station not found")
    return station


def get_user(db: Database, user_id: str) -> Optional[dict]:
    """Busca el usuario por id; acepta ObjectId serializado o id de texto."""
    from bson import ObjectId

    user = db.users.find_one({"_id": user_id})
    if user is None and ObjectId.is_valid(user_id):
        user = db.users.find_one({"_id": ObjectId(user_id)})
    return user


def next_sequence(db: Database, name: str) -> int:
    """Contador atómico; da el orden de inserción para desempatar fechas iguales."""
    doc = db.counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return doc["value"]


# ==========================================
# Lock por estación
# ==========================================

class LockTimeout(Exception):
    pass


@contextmanager
def station_lock(
    db: Database,
    key: str,
    timeout: float = 5.0,
    lease: float = 30.0,
    poll: float = 0.05,
) -> Iterator[str]:
    """Serializa una sección crítica entre procesos usando un documento con _id único.

    ``timeout`` es cuánto se espera para adquirirlo; ``lease`` es cuánto vive el
    lock si el dueño cae sin liberarlo. Sólo el dueño (token ``owner``) lo borra.
    """
    owner = uuid4().hex
    deadline = time.monotonic() + timeout
    while True:
        now = utcnow()
        try:
            db.locks.insert_one({"_id": key, "owner": owner, "expires_at": now + timedelta(seconds=lease)})
            break
        except DuplicateKeyError:
            taken = db.locks.delete_one({"_id": key, "expires_at": {"$lt": now}})
            if taken.deleted_count:
                logger.warning("Lock %s expirado, se toma de nuevo", key)
                continue
            if time.monotonic() >= deadline:
                raise LockTimeout(key)
            time.sleep(poll)
    try:
        yield owner
    finally:
        db.locks.delete_one({"_id": key, "owner": owner})
