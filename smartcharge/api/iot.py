from fastapi import APIRouter, Depends, Request
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from smartcharge.api.deps import get_db, get_settings, read_json, require_device
from smartcharge.core.config import Settings
from smartcharge.core.errors import unwrap
from smartcharge.models.parsing import parse_telemetry
from smartcharge.services.telemetry import get_device_config, ingest_telemetry

router = APIRouter(prefix="/iot", dependencies=[Depends(require_device)])


@router.post("/stations/{station_id}", tags=["iot"])  # /api/iot/stations/{id}
async def post_telemetry(station_id: int, request: Request, db: Database = Depends(get_db)):
    """Sondeo de la estación: sube una lectura y recibe el siguiente comando."""
    payload = unwrap(parse_telemetry(await read_json(request)))
    result = await run_in_threadpool(ingest_telemetry, db, station_id, payload)
    # la estación lee el comando en el nivel superior
    return {"success": True, "command": result["command"], "data": result}


@router.get("/stations/{station_id}", tags=["iot"])  # /api/iot/stations/{id}
def get_config(station_id: int, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    return {"success": True, "data": get_device_config(db, station_id, settings)}
