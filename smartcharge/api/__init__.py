from fastapi import APIRouter, Depends

from .deps import require_operator
from .iot import router as iot_router
from .stations import router as stations_router
from .reservations import router as reservations_router

router = APIRouter()
router.include_router(iot_router)
router.include_router(stations_router, dependencies=[Depends(require_operator)])
router.include_router(reservations_router, dependencies=[Depends(require_operator)])
