from fastapi import APIRouter
from .planner import router as planner_router
from .snapshots import router as snapshots_router
from .inventory import router as inventory_router

api_router = APIRouter()
api_router.include_router(planner_router)
api_router.include_router(snapshots_router)
api_router.include_router(inventory_router)
