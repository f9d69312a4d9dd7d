# chargehub/api/routes.py
from fastapi import APIRouter

from chargehub.api.charging_session_routes import router as charging_session_router
from chargehub.api.reservation_routes import router as reservation_router
from chargehub.api.charging_point_routes import router as charging_point_router

router = APIRouter()

router.include_router(charging_session_router)
router.include_router(reservation_router)
router.include_router(charging_point_router)
