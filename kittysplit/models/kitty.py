"""
Kitty model - a group sharing expenses in a single currency.

Document layout (one document per kitty):
- members: embedded, exactly one with is_owner=True
- expenses: embedded, reference members by identity key
- settlements: embedded history of toggled settle-up transactions
- version: bumped on every settlements write (optimistic lock)

Balances and settlement plans are never stored; they are derived from
members + expenses on every read.
"""

from typing import List, Optional
from datetime import datetime
from uuid import uuid4
from pydantic import BaseModel, Field, ConfigDict

from kittysplit.models.base import MongoModel, _utcnow


def new_member_id() -> str:
    """Surrogate key stored with the member when it is created."""
    return f"mem_{uuid4().hex}"


def new_expense_id() -> str:
    return f"exp_{uuid4().hex}"


class Member(BaseModel):
    """A person in a kitty: registered user or email-only invitee."""
    model_config = ConfigDict(populate_by_name=True)

    member_id: str = Field(default_factory=new_member_id)
    user_id: Optional[str] = None   # None until an invitee signs in
    email: Optional[str] = None
    name: str = ""
    is_owner: bool = False
    joined_at: datetime = Field(default_factory=_utcnow)


class Expense(BaseModel):
    """
    A shared expense.

    paid_by and participants hold member identity keys, so an expense keeps
    pointing at the same people even if they later leave the kitty.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_expense_id)
    description: str = ""
    amount: float
    category: str = "uncategorized"
    notes: str = ""
    paid_by: str
    paid_by_name: str = ""
    participants: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)


class SettlementRecord(BaseModel):
    """
    A user-toggled marker that a planned transaction was paid outside the app.

    Keyed by (from_key, to_key, amount) with amount rounded to 2 places.
    Records are never deleted; they remain as history when the plan moves on.
    """
    from_key: str
    to_key: str
    from_name: str = ""
    to_name: str = ""
    amount: float
    settled: bool = True
    updated_at: datetime = Field(default_factory=_utcnow)

    def matches(self, from_key: str, to_key: str, amount: float) -> bool:
        return (
            self.from_key == from_key
            and self.to_key == to_key
            and round(self.amount, 2) == round(amount, 2)
        )


class Kitty(MongoModel):
    name: str
    description: str = ""
    currency: str
    created_by: str
    members: List[Member] = Field(default_factory=list)
    expenses: List[Expense] = Field(default_factory=list)
    settlements: List[SettlementRecord] = Field(default_factory=list)
    total_amount: float = 0.0
    version: int = 1
    is_deleted: bool = False

    def owner(self) -> Optional[Member]:
        return next((m for m in self.members if m.is_owner), None)
