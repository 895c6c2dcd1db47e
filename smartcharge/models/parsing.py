"""Funciones de parseo de payloads.

Cada función recibe el JSON crudo del request y devuelve ``Ok(valor)`` o
``Err(problemas)``; cada problema indica la ruta del campo y un código de
motivo. Los modelos pydantic de ``models.py`` hacen la validación declarativa
de tipos y rangos; aquí se añaden las reglas que cruzan campos.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, Iterable, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from smartcharge.models.models import (
    CommandIn,
    ReservationIn,
    ReservationUpdateIn,
    TelemetryIn,
)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class FieldProblem:
    path: str
    code: str
    message: str

    def as_dict(self) -> dict:
        return {"path": self.path, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    problems: Tuple[FieldProblem, ...]


ParseResult = Union[Ok[T], Err]


@dataclass(frozen=True)
class ReservationRequest:
    user_id: str
    station_id: int
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class ReservationChanges:
    status: Optional[str]
    start_time: Optional[datetime]
    end_time: Optional[datetime]


def problems_from_pydantic(errors: Iterable[dict]) -> List[FieldProblem]:
    problems = []
    for e in errors:
        # FastAPI antepone "body"/"path" a la ruta; se conserva tal cual
        loc = [str(p) for p in e.get("loc", ())]
        problems.append(FieldProblem(".".join(loc) or "$", e.get("type", "invalid"), e.get("msg", "")))
    return problems


def _parse_model(model: Type[M], raw: Any) -> ParseResult[M]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        return Err((FieldProblem("$", "object_expected", "Body must be a JSON object"),))
    try:
        return Ok(model.model_validate(raw))
    except ValidationError as exc:
        return Err(tuple(problems_from_pydantic(exc.errors())))


def parse_datetime(value: str) -> Optional[datetime]:
    """ISO-8601 con hora → datetime UTC naive (como lo guarda Mongo); None si no es válido.

    Una fecha sola (``2026-05-04``) no es válida: se exige la parte ``T<hora>``.
    """
    if not isinstance(value, str) or "T" not in value:
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _datetime_field(path: str, value: Optional[str], problems: List[FieldProblem]) -> Optional[datetime]:
    if value is None:
        return None
    dt = parse_datetime(value)
    if dt is None:
        problems.append(FieldProblem(path, "invalid_datetime", "Expected an ISO-8601 date-time"))
    return dt


def _check_interval(start: Optional[datetime], end: Optional[datetime], problems: List[FieldProblem]) -> None:
    if start is not None and end is not None and end <= start:
        problems.append(FieldProblem("endTime", "interval_inverted", "End time must be after start time"))


def parse_telemetry(raw: Any) -> ParseResult[TelemetryIn]:
    return _parse_model(TelemetryIn, raw)


def parse_command(raw: Any) -> ParseResult[CommandIn]:
    return _parse_model(CommandIn, raw)


def parse_reservation(raw: Any) -> ParseResult[ReservationRequest]:
    result = _parse_model(ReservationIn, raw)
    if isinstance(result, Err):
        return result
    body = result.value
    problems: List[FieldProblem] = []
    start = _datetime_field("startTime", body.startTime, problems)
    end = _datetime_field("endTime", body.endTime, problems)
    _check_interval(start, end, problems)
    if problems:
        return Err(tuple(problems))
    return Ok(ReservationRequest(body.userId, body.stationId, start, end))


def parse_reservation_update(raw: Any) -> ParseResult[ReservationChanges]:
    result = _parse_model(ReservationUpdateIn, raw)
    if isinstance(result, Err):
        return result
    body = result.value
    problems: List[FieldProblem] = []
    start = _datetime_field("startTime", body.startTime, problems)
    end = _datetime_field("endTime", body.endTime, problems)
    _check_interval(start, end, problems)
    if problems:
        return Err(tuple(problems))
    status = body.status.value if body.status else None
    return Ok(ReservationChanges(status, start, end))
