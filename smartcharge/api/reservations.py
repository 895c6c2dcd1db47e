from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from smartcharge.api.deps import get_db, get_settings, read_json
from smartcharge.core.config import Settings
from smartcharge.core.errors import unwrap
from smartcharge.models.models import ReservationStatus
from smartcharge.models.parsing import parse_reservation, parse_reservation_update
from smartcharge.services.reservations import (
    cancel_reservation,
    create_reservation,
    get_reservation,
    list_reservations,
    update_reservation,
)

router = APIRouter(prefix="/reservations")


@router.get("", tags=["reservations"])  # /api/reservations
def get_reservations(
    userId: Optional[str] = None,
    stationId: Optional[int] = None,
    status: Optional[ReservationStatus] = None,
    db: Database = Depends(get_db),
):
    items = list_reservations(db, user_id=userId, station_id=stationId, status=status)
    return {"success": True, "data": items, "count": len(items)}


@router.post("", tags=["reservations"])  # /api/reservations
async def post_reservation(request: Request, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    reservation = unwrap(parse_reservation(await read_json(request)))
    data = await run_in_threadpool(create_reservation, db, reservation, settings)
    return JSONResponse({"success": True, "data": data}, status_code=201)


@router.get("/{reservation_id}", tags=["reservations"])  # /api/reservations/{id}
def get_reservation_by_id(reservation_id: str, db: Database = Depends(get_db)):
    return {"success": True, "data": get_reservation(db, reservation_id)}


@router.patch("/{reservation_id}", tags=["reservations"])  # /api/reservations/{id}
async def patch_reservation(
    reservation_id: str,
    request: Request,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    changes = unwrap(parse_reservation_update(await read_json(request)))
    data = await run_in_threadpool(update_reservation, db, reservation_id, changes, settings)
    return {"success": True, "data": data}


@router.delete("/{reservation_id}", tags=["reservations"])  # /api/reservations/{id}
def delete_reservation(reservation_id: str, db: Database = Depends(get_db)):
    """Cancela la reserva; el documento se conserva con estado CANCELLED."""
    data = cancel_reservation(db, reservation_id)
    return {"success": True, "message": "Reservation cancelled successfully", "data": data}
