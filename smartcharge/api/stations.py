from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from smartcharge.api.deps import get_db, get_settings, read_json
from smartcharge.core.config import Settings
from smartcharge.core.errors import unwrap
from smartcharge.models.parsing import parse_command
from smartcharge.services.commands import enqueue_command, list_commands
from smartcharge.services.telemetry import get_station_detail, get_telemetry_history

router = APIRouter(prefix="/stations")


@router.get("/{station_id}", tags=["stations"])  # /api/stations/{id}
def station_detail(station_id: int, db: Database = Depends(get_db)):
    """Estación con sus 10 lecturas más recientes."""
    return {"success": True, "data": get_station_detail(db, station_id)}


@router.get("/{station_id}/telemetry", tags=["stations"])  # /api/stations/{id}/telemetry
def station_telemetry(station_id: int, hours: int = 24, limit: int = 100, db: Database = Depends(get_db)):
    hours = max(1, min(168, hours))
    limit = max(1, min(1000, limit))
    return {"success": True, "data": get_telemetry_history(db, station_id, hours=hours, limit=limit)}


@router.post("/{station_id}/command", tags=["commands"])  # /api/stations/{id}/command
async def post_command(station_id: int, request: Request, db: Database = Depends(get_db)):
    """Encola un comando; la estación lo recibe en su próximo sondeo."""
    command = unwrap(parse_command(await read_json(request)))
    data = await run_in_threadpool(enqueue_command, db, station_id, command)
    return JSONResponse({"success": True, "data": data}, status_code=201)


@router.get("/{station_id}/command", tags=["commands"])  # /api/stations/{id}/command
def get_commands(
    station_id: int,
    limit: int | None = None,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    commands = list_commands(db, station_id, limit or settings.command_history_limit)
    return {"success": True, "data": commands, "count": len(commands)}
