# models.py
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StationStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    MAINTENANCE = "MAINTENANCE"
    FAULT = "FAULT"


class PowerType(str, Enum):
    AC_SLOW = "AC_SLOW"
    AC_FAST = "AC_FAST"
    DC_FAST = "DC_FAST"


class CommandType(str, Enum):
    START = "START"
    STOP = "STOP"
    REBOOT = "REBOOT"


class CommandStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    ACKNOWLEDGED = "ACKNOWLEDGED"  # reservado: ningún endpoint lo asigna todavía


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


NO_COMMAND = "NONE"

UNRESERVABLE_STATUSES = (StationStatus.MAINTENANCE, StationStatus.FAULT)
OPEN_RESERVATION_STATUSES = (ReservationStatus.PENDING, ReservationStatus.ACTIVE)
TERMINAL_RESERVATION_STATUSES = (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)


# ==========================
# Payloads de entrada
# ==========================

def _reading(ge: float, le: float):
    return Field(None, ge=ge, le=le, strict=True, allow_inf_nan=False)


class TelemetryIn(BaseModel):
    """Lectura enviada por el controlador de la estación en cada sondeo."""

    model_config = ConfigDict(extra="ignore")

    voltage: Optional[float] = _reading(0, 500)  # V
    current: Optional[float] = _reading(-10, 200)  # A (negativo para calibración)
    power: Optional[float] = _reading(-10, 100)  # kW
    temperature: Optional[float] = _reading(-40, 100)  # °C
    pvPower: Optional[float] = _reading(0, 10000)  # W, instalaciones con panel solar
    battVoltage: Optional[float] = _reading(0, 60)  # V
    status: Optional[StationStatus] = None
    deviceId: Optional[str] = None


class CommandIn(BaseModel):
    command: CommandType
    payload: Optional[str] = None


class ReservationIn(BaseModel):
    userId: str = Field(min_length=1)
    stationId: int = Field(gt=0, strict=True)
    startTime: str
    endTime: str


class ReservationUpdateIn(BaseModel):
    status: Optional[ReservationStatus] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None


# ==========================
# Serialización de documentos Mongo
# ==========================

def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def station_out(doc: dict) -> dict:
    return {
        "id": doc["_id"],
        "name": doc.get("name"),
        "status": doc.get("status"),
        "maxPower": doc.get("max_power"),
        "powerType": doc.get("power_type"),
        "deviceId": doc.get("device_id"),
        "address": doc.get("address"),
        "city": doc.get("city"),
        "latitude": doc.get("latitude"),
        "longitude": doc.get("longitude"),
        "lastPing": isoformat(doc.get("last_ping")),
    }


def station_snapshot(doc: dict) -> dict:
    return {
        "id": doc["_id"],
        "status": doc.get("status"),
        "lastPing": isoformat(doc.get("last_ping")),
    }


def telemetry_out(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "stationId": doc["station_id"],
        "voltage": doc.get("voltage"),
        "current": doc.get("current"),
        "power": doc.get("power"),
        "temperature": doc.get("temperature"),
        "pvPower": doc.get("pv_power"),
        "battVoltage": doc.get("batt_voltage"),
        "timestamp": isoformat(doc.get("timestamp")),
    }


def command_out(doc: dict) -> dict:
    return {
        "id": doc["_id"],
        "stationId": doc["station_id"],
        "command": doc["command"],
        "payload": doc.get("payload"),
        "status": doc["status"],
        "createdAt": isoformat(doc.get("created_at")),
        "sentAt": isoformat(doc.get("sent_at")),
    }


def reservation_out(doc: dict, station: Optional[dict] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": str(doc["_id"]),
        "userId": doc["user_id"],
        "stationId": doc["station_id"],
        "startTime": isoformat(doc["start_time"]),
        "endTime": isoformat(doc["end_time"]),
        "status": doc["status"],
        "createdAt": isoformat(doc.get("created_at")),
    }
    if station is not None:
        out["station"] = {
            "id": station["_id"],
            "name": station.get("name"),
            "address": station.get("address"),
        }
    return out


def many(serializer, docs) -> List[dict]:
    return [serializer(d) for d in docs]
