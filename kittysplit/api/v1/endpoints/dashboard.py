from fastapi import APIRouter, Depends

from kittysplit.api.deps import get_dashboard_service
from kittysplit.core.auth import CurrentUser, get_current_user
from kittysplit.schemas.dashboard import DashboardResponse
from kittysplit.services.dashboard_service import DashboardService

router = APIRouter()


@router.get("/", response_model=DashboardResponse)
async def get_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    """Totals, spending breakdown and what the current user still has to pay"""
    return await service.dashboard_for(current_user)
