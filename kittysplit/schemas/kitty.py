from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime


class KittyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    currency: Optional[str] = Field(default=None, min_length=1, max_length=5)


class MemberResponse(BaseModel):
    identity: str
    member_id: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: str
    is_owner: bool
    joined_at: datetime


class ExpenseResponse(BaseModel):
    id: str
    description: str
    amount: float
    category: str
    notes: str
    paid_by: str
    paid_by_name: str
    participants: List[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class KittyResponse(BaseModel):
    id: str
    name: str
    description: str
    currency: str
    created_by: str
    members: List[MemberResponse]
    expenses: List[ExpenseResponse]
    total_amount: float
    created_at: datetime
    updated_at: datetime


class KittyListItem(BaseModel):
    id: str
    name: str
    description: str
    currency: str
    member_count: int
    expense_count: int
    total_amount: float
    created_at: datetime


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., gt=0)
    category: str = "uncategorized"
    notes: str = ""
    paid_by: str
    # Empty means everyone currently in the kitty
    participants: Optional[List[str]] = None

    @field_validator("amount")
    @classmethod
    def two_decimals(cls, v: float) -> float:
        return round(v, 2)
