# commands.py
"""Cola de comandos por estación.

Los controladores no aceptan conexiones entrantes, así que los comandos se
entregan cuando la estación sondea: cada ingesta reclama como mucho un comando,
el PENDING más antiguo, y lo marca SENT en una sola operación atómica.
"""

import logging
from typing import List

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from smartcharge.database.database import next_sequence, require_station, utcnow
from smartcharge.models.models import (
    NO_COMMAND,
    CommandIn,
    CommandStatus,
    command_out,
)

logger = logging.getLogger(__name__)

FIFO_ORDER = [("created_at", ASCENDING), ("_id", ASCENDING)]


def enqueue_command(db: Database, station_id: int, command: CommandIn) -> dict:
    """Crea un comando PENDING para la estación y devuelve su id y estado."""
    require_station(db, station_id)
    doc = {
        "_id": next_sequence(db, "commands"),
        "station_id": station_id,
        "command": command.command.value,
        "payload": command.payload,
        "status": CommandStatus.PENDING.value,
        "created_at": utcnow(),
        "sent_at": None,
    }
    db.commands.insert_one(doc)
    logger.info("Comando %s encolado para estación %s (id=%s)", doc["command"], station_id, doc["_id"])
    return {
        "commandId": doc["_id"],
        "command": doc["command"],
        "status": doc["status"],
        "message": f'Command "{doc["command"]}" queued for station {station_id}',
    }


def dispatch_next_command(db: Database, station_id: int) -> str:
    """Reclama el comando PENDING más antiguo de la estación y lo marca SENT.

    El filtro sobre ``status`` hace que el reclamo tenga éxito para un único
    llamador aunque dos sondeos lleguen a la vez. Devuelve ``"NONE"`` si no hay
    nada pendiente.
    """
    claimed = db.commands.find_one_and_update(
        {"station_id": station_id, "status": CommandStatus.PENDING.value},
        {"$set": {"status": CommandStatus.SENT.value, "sent_at": utcnow()}},
        sort=FIFO_ORDER,
        return_document=ReturnDocument.AFTER,
    )
    if claimed is None:
        return NO_COMMAND
    logger.info("Comando %s (id=%s) enviado a estación %s", claimed["command"], claimed["_id"], station_id)
    return claimed["command"]


def list_commands(db: Database, station_id: int, limit: int = 20) -> List[dict]:
    """Últimos comandos de la estación, más reciente primero."""
    require_station(db, station_id)
    limit = max(1, min(100, limit))
    cursor = (
        db.commands.find({"station_id": station_id})
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .limit(limit)
    )
    return [command_out(c) for c in cursor]
