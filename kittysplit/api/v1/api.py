from fastapi import APIRouter
from kittysplit.api.v1.endpoints import kitties, settlements, dashboard

api_router = APIRouter()

api_router.include_router(kitties.router, prefix="/kitties", tags=["kitties"])
api_router.include_router(settlements.router, prefix="/kitties", tags=["settlements"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
