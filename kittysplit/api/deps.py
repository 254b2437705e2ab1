from fastapi import Depends, HTTPException, status

from kittysplit.core.auth import CurrentUser, get_current_user
from kittysplit.db.mongo import get_db
from kittysplit.models.kitty import Kitty
from kittysplit.repositories.kitty_repo import KittyRepository, KittyNotFoundError
from kittysplit.services.dashboard_service import DashboardService
from kittysplit.services.kitty_service import KittyService, KittyAccessError


def get_kitty_service(db = Depends(get_db)) -> KittyService:
    return KittyService(KittyRepository(db))


def get_dashboard_service(
    kitties: KittyService = Depends(get_kitty_service)
) -> DashboardService:
    return DashboardService(kitties)


async def get_member_kitty(
    kitty_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
) -> Kitty:
    """Load the kitty from the path, 404 if missing, 403 if not a member."""
    try:
        return await service.get_for(kitty_id, current_user)
    except KittyNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Kitty not found"
        )
    except KittyAccessError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )
