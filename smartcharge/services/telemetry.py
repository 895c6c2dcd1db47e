# telemetry.py
from datetime import timedelta
import logging
from typing import Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from smartcharge.core.config import Settings
from smartcharge.core.errors import DeviceMismatch, NotFound
from smartcharge.database.database import require_station, utcnow
from smartcharge.models.models import (
    StationStatus,
    TelemetryIn,
    isoformat,
    many,
    reservation_out,
    station_out,
    station_snapshot,
    telemetry_out,
)
from smartcharge.services.commands import dispatch_next_command

logger = logging.getLogger(__name__)

OCCUPIED_CURRENT_A = 1.0
IDLE_CURRENT_A = 0.5
MIN_GRID_VOLTAGE_V = 100.0

# campos del payload → campos en Mongo
SAMPLE_FIELDS = {
    "voltage": "voltage",
    "current": "current",
    "power": "power",
    "temperature": "temperature",
    "pvPower": "pv_power",
    "battVoltage": "batt_voltage",
}


def infer_status(sample: TelemetryIn) -> Optional[StationStatus]:
    """Deduce el estado de la estación a partir de una lectura.

    El orden importa: la regla de corriente se evalúa primero y corta el resto,
    de modo que corriente alta con tensión baja da OCCUPIED y no FAULT.
    """
    current, voltage = sample.current, sample.voltage
    if current is not None and current > OCCUPIED_CURRENT_A:
        return StationStatus.OCCUPIED
    if voltage is not None and voltage > MIN_GRID_VOLTAGE_V and (current is None or current < IDLE_CURRENT_A):
        return StationStatus.AVAILABLE
    if voltage is not None and voltage < MIN_GRID_VOLTAGE_V:
        return StationStatus.FAULT
    return None


def ingest_telemetry(db: Database, station_id: int, payload: TelemetryIn) -> dict:
    """Guarda la lectura, actualiza estado y heartbeat, y entrega el siguiente comando."""
    station = require_station(db, station_id)

    # un deviceId vacío equivale a no enviarlo
    if payload.deviceId and station.get("device_id") != payload.deviceId:
        logger.warning(
            "Estación %s: deviceId %r no coincide con %r", station_id, payload.deviceId, station.get("device_id")
        )
        raise DeviceMismatch()

    now = utcnow()
    sample = {"station_id": station_id, "timestamp": now}
    for src, dst in SAMPLE_FIELDS.items():
        sample[dst] = getattr(payload, src)
    result = db.telemetry.insert_one(sample)
    sample["_id"] = result.inserted_id

    new_status = payload.status or infer_status(payload)
    update = {"last_ping": now}
    if new_status is not None:
        update["status"] = new_status.value

    updated = db.stations.find_one_and_update(
        {"_id": station_id},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # la estación se borró entre la lectura y la actualización
        raise NotFound("Station not found")

    if new_status is not None and new_status.value != station.get("status"):
        logger.info("Estación %s: %s → %s", station_id, station.get("status"), new_status.value)

    command = dispatch_next_command(db, station_id)
    return {
        "command": command,
        "telemetry": telemetry_out(sample),
        "station": station_snapshot(updated),
    }


def get_device_config(db: Database, station_id: int, settings: Settings) -> dict:
    """Configuración que la estación pide al arrancar."""
    station = require_station(db, station_id)
    return {
        "id": station["_id"],
        "name": station.get("name"),
        "deviceId": station.get("device_id"),
        "maxPower": station.get("max_power"),
        "powerType": station.get("power_type"),
        "reportInterval": settings.report_interval_ms,
        "serverTime": isoformat(utcnow()),
    }


def get_station_detail(db: Database, station_id: int, recent: int = 10) -> dict:
    """Ficha de la estación con sus últimas lecturas y las reservas del día (UTC)."""
    station = require_station(db, station_id)
    samples = (
        db.telemetry.find({"station_id": station_id})
        .sort([("timestamp", DESCENDING), ("_id", DESCENDING)])
        .limit(recent)
    )
    day_start = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    today = db.reservations.find({
        "station_id": station_id,
        "start_time": {"$gte": day_start},
        "end_time": {"$lte": day_start + timedelta(days=1)},
    }).sort("start_time", ASCENDING)
    out = station_out(station)
    out["telemetry"] = many(telemetry_out, samples)
    out["reservations"] = many(reservation_out, today)
    return out


def get_telemetry_history(db: Database, station_id: int, hours: int = 24, limit: int = 100) -> dict:
    """Última lectura y el histórico de las últimas ``hours`` horas en orden ascendente."""
    require_station(db, station_id)
    latest = db.telemetry.find_one({"station_id": station_id}, sort=[("timestamp", DESCENDING), ("_id", DESCENDING)])
    since = utcnow() - timedelta(hours=hours)
    history = (
        db.telemetry.find({"station_id": station_id, "timestamp": {"$gte": since}})
        .sort([("timestamp", ASCENDING), ("_id", ASCENDING)])
        .limit(limit)
    )
    return {
        "current": telemetry_out(latest) if latest else None,
        "history": many(telemetry_out, history),
    }
