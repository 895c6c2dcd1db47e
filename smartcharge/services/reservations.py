# reservations.py
"""Reservas de estaciones y detección de solapes.

Los intervalos son semiabiertos ``[inicio, fin)``: dos reservas que sólo
comparten el instante de frontera no se solapan. Las reservas COMPLETED y
CANCELLED nunca entran en conflicto.
"""

from datetime import datetime
import logging
from typing import List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from smartcharge.core.config import Settings
from smartcharge.core.errors import (
    Conflict,
    InvalidTransition,
    NotFound,
    StationUnavailable,
)
from smartcharge.database.database import LockTimeout, get_station, get_user, station_lock, utcnow
from smartcharge.models.models import (
    OPEN_RESERVATION_STATUSES,
    TERMINAL_RESERVATION_STATUSES,
    UNRESERVABLE_STATUSES,
    ReservationStatus,
    reservation_out,
)
from smartcharge.models.parsing import ReservationChanges, ReservationRequest

logger = logging.getLogger(__name__)


def intervals_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and end > other_start


def find_conflict(
    db: Database,
    station_id: int,
    start: datetime,
    end: datetime,
    exclude_id: Optional[ObjectId] = None,
) -> Optional[dict]:
    """Primera reserva abierta de la estación que se solapa con ``[start, end)``."""
    query = {
        "station_id": station_id,
        "status": {"$in": [s.value for s in OPEN_RESERVATION_STATUSES]},
        "start_time": {"$lt": end},
        "end_time": {"$gt": start},
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    for existing in db.reservations.find(query):
        if intervals_overlap(start, end, existing["start_time"], existing["end_time"]):
            return existing
    return None


def _reservation_lock(db: Database, station_id: int, settings: Settings):
    return station_lock(
        db,
        f"reservations:{station_id}",
        timeout=settings.reservation_lock_timeout,
        lease=settings.reservation_lock_lease,
    )


def _object_id(reservation_id: str) -> ObjectId:
    if not ObjectId.is_valid(reservation_id):
        raise NotFound("Reservation not found")
    return ObjectId(reservation_id)


def _insert_without_conflict(db: Database, doc: dict, settings: Settings) -> None:
    try:
        with _reservation_lock(db, doc["station_id"], settings):
            if find_conflict(db, doc["station_id"], doc["start_time"], doc["end_time"]):
                raise Conflict("Time slot is already reserved")
            db.reservations.insert_one(doc)
    except LockTimeout:
        logger.warning("Lock de reservas ocupado para estación %s", doc["station_id"])
        raise Conflict("Station is busy, retry the reservation")


def create_reservation(db: Database, request: ReservationRequest, settings: Settings) -> dict:
    station = get_station(db, request.station_id)
    if station is None:
        raise NotFound("Station not found")
    if station.get("status") in [s.value for s in UNRESERVABLE_STATUSES]:
        raise StationUnavailable()
    if get_user(db, request.user_id) is None:
        raise NotFound("User not found")

    doc = {
        "user_id": request.user_id,
        "station_id": request.station_id,
        "start_time": request.start_time,
        "end_time": request.end_time,
        "status": ReservationStatus.PENDING.value,
        "created_at": utcnow(),
    }
    _insert_without_conflict(db, doc, settings)
    logger.info(
        "Reserva %s creada: estación %s [%s, %s)",
        doc["_id"], request.station_id, request.start_time, request.end_time,
    )
    return reservation_out(doc, station)


def list_reservations(
    db: Database,
    user_id: Optional[str] = None,
    station_id: Optional[int] = None,
    status: Optional[ReservationStatus] = None,
) -> List[dict]:
    query = {}
    if user_id:
        query["user_id"] = user_id
    if station_id is not None:
        query["station_id"] = station_id
    if status is not None:
        query["status"] = status.value
    docs = list(db.reservations.find(query).sort("start_time", DESCENDING))
    stations = {s["_id"]: s for s in db.stations.find({"_id": {"$in": list({d["station_id"] for d in docs})}})}
    return [reservation_out(d, stations.get(d["station_id"])) for d in docs]


def get_reservation(db: Database, reservation_id: str) -> dict:
    doc = db.reservations.find_one({"_id": _object_id(reservation_id)})
    if doc is None:
        raise NotFound("Reservation not found")
    return reservation_out(doc, get_station(db, doc["station_id"]))


def update_reservation(db: Database, reservation_id: str, changes: ReservationChanges, settings: Settings) -> dict:
    oid = _object_id(reservation_id)
    existing = db.reservations.find_one({"_id": oid})
    if existing is None:
        raise NotFound("Reservation not found")
    if existing["status"] in [s.value for s in TERMINAL_RESERVATION_STATUSES]:
        raise InvalidTransition("Cannot modify completed or cancelled reservation")

    update = {}
    if changes.status:
        update["status"] = changes.status
    start = changes.start_time or existing["start_time"]
    end = changes.end_time or existing["end_time"]
    if changes.start_time or changes.end_time:
        if end <= start:
            raise InvalidTransition("End time must be after start time")
        update["start_time"], update["end_time"] = start, end

    station_id = existing["station_id"]
    if not update:
        return reservation_out(existing, get_station(db, station_id))
    reopens = update.get("status", existing["status"]) in [s.value for s in OPEN_RESERVATION_STATUSES]
    try:
        with _reservation_lock(db, station_id, settings):
            if reopens and "start_time" in update and find_conflict(db, station_id, start, end, exclude_id=oid):
                raise Conflict("Time slot is already reserved")
            doc = db.reservations.find_one_and_update(
                {"_id": oid, "status": existing["status"]},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
    except LockTimeout:
        raise Conflict("Station is busy, retry the reservation")
    if doc is None:
        raise Conflict("Reservation changed concurrently, retry")
    return reservation_out(doc, get_station(db, station_id))


def cancel_reservation(db: Database, reservation_id: str) -> dict:
    """Cancela la reserva (borrado lógico; nunca se elimina el documento)."""
    oid = _object_id(reservation_id)
    existing = db.reservations.find_one({"_id": oid})
    if existing is None:
        raise NotFound("Reservation not found")
    if existing["status"] == ReservationStatus.COMPLETED.value:
        raise InvalidTransition("Cannot cancel completed reservation")
    doc = db.reservations.find_one_and_update(
        {"_id": oid, "status": {"$ne": ReservationStatus.COMPLETED.value}},
        {"$set": {"status": ReservationStatus.CANCELLED.value}},
        return_document=ReturnDocument.AFTER,
    )
    if doc is None:
        raise InvalidTransition("Cannot cancel completed reservation")
    logger.info("Reserva %s cancelada", reservation_id)
    return reservation_out(doc)
