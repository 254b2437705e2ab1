from fastapi import APIRouter, HTTPException, Depends, status

from kittysplit.api.deps import get_kitty_service, get_member_kitty
from kittysplit.core.auth import CurrentUser, get_current_user
from kittysplit.models.kitty import Kitty
from kittysplit.repositories.kitty_repo import KittyNotFoundError
from kittysplit.schemas.ledger import KittySummaryResponse, SettlementPlanResponse
from kittysplit.schemas.settlement import SettlementToggle
from kittysplit.services.kitty_service import KittyService
from kittysplit.services.settlement_tracker import (
    SettlementConflictError,
    SettlementWriteError,
    UnknownSettlementError,
)

router = APIRouter()


@router.get("/{kitty_id}/settlements", response_model=SettlementPlanResponse)
async def get_settlements(
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Settle-up plan with settled flags and past settlement history"""
    return service.summary(kitty, current_user).settlements


@router.post("/{kitty_id}/settlements/toggle", response_model=KittySummaryResponse)
async def toggle_settlement(
    toggle_in: SettlementToggle,
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Mark a planned transaction settled, or back to pending"""
    try:
        return await service.toggle_settlement(
            kitty, current_user, toggle_in.from_key, toggle_in.to_key, toggle_in.amount
        )
    except UnknownSettlementError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except KittyNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kitty not found")
    except SettlementConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SettlementWriteError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
