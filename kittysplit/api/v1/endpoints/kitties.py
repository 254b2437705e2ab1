from typing import List
from fastapi import APIRouter, HTTPException, Depends, status

from kittysplit.api.deps import get_kitty_service, get_member_kitty
from kittysplit.core.auth import CurrentUser, get_current_user
from kittysplit.models.kitty import Kitty
from kittysplit.repositories.kitty_repo import KittyNotFoundError, MemberError
from kittysplit.schemas.kitty import KittyCreate, KittyListItem, ExpenseCreate
from kittysplit.schemas.ledger import BalanceResponse, KittySummaryResponse
from kittysplit.schemas.member import MemberAdd
from kittysplit.services.kitty_service import KittyService, KittyAccessError
from kittysplit.utils.expense_validation import ExpenseValidationError

router = APIRouter()


@router.get("/", response_model=List[KittyListItem])
async def list_kitties(
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """List kitties the current user belongs to"""
    kitties = await service.list_for(current_user)
    return [service.to_list_item(k) for k in kitties]


@router.post("/", response_model=KittySummaryResponse, status_code=status.HTTP_201_CREATED)
async def create_kitty(
    kitty_in: KittyCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Create a kitty owned by the current user"""
    kitty = await service.create(
        current_user, kitty_in.name, kitty_in.description, kitty_in.currency
    )
    return service.summary(kitty, current_user)


@router.get("/{kitty_id}", response_model=KittySummaryResponse)
async def get_kitty(
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Kitty with balances and settle-up plan"""
    return service.summary(kitty, current_user)


@router.delete("/{kitty_id}")
async def delete_kitty(
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Delete a kitty (owner only)"""
    try:
        await service.delete(kitty, current_user)
    except KittyAccessError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except KittyNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kitty not found")
    return {"message": "Kitty deleted successfully"}


@router.get("/{kitty_id}/balances", response_model=List[BalanceResponse])
async def get_balances(
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Per-member paid, fair share and net balance"""
    return service.summary(kitty, current_user).balances


@router.post("/{kitty_id}/members", response_model=KittySummaryResponse)
async def add_member(
    member_in: MemberAdd,
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Invite a member by email"""
    try:
        updated = await service.add_member(kitty, member_in.email, member_in.name)
    except MemberError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except KittyNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kitty not found")
    return service.summary(updated, current_user)


@router.delete("/{kitty_id}/members/{identity}", response_model=KittySummaryResponse)
async def remove_member(
    identity: str,
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Remove a member (never the owner)"""
    try:
        updated = await service.remove_member(kitty, identity)
    except MemberError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except KittyNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kitty not found")
    return service.summary(updated, current_user)


@router.post("/{kitty_id}/expenses", response_model=KittySummaryResponse)
async def add_expense(
    expense_in: ExpenseCreate,
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Log a shared expense"""
    try:
        updated = await service.add_expense(kitty, expense_in)
    except ExpenseValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except KittyNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kitty not found")
    return service.summary(updated, current_user)


@router.delete("/{kitty_id}/expenses/{expense_id}", response_model=KittySummaryResponse)
async def delete_expense(
    expense_id: str,
    kitty: Kitty = Depends(get_member_kitty),
    current_user: CurrentUser = Depends(get_current_user),
    service: KittyService = Depends(get_kitty_service)
):
    """Delete an expense"""
    try:
        updated = await service.delete_expense(kitty, expense_id)
    except KittyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return service.summary(updated, current_user)
