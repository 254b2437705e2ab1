from typing import Dict, List
from pydantic import BaseModel
from datetime import datetime


class PendingSettlement(BaseModel):
    kitty_id: str
    kitty_name: str
    to_key: str
    to_name: str
    amount: float
    currency: str


class TopSpender(BaseModel):
    identity: str
    name: str
    total: float
    count: int


class RecentExpense(BaseModel):
    id: str
    kitty_id: str
    kitty_name: str
    description: str
    category: str
    amount: float
    currency: str
    paid_by_name: str
    created_at: datetime


class DayActivity(BaseModel):
    count: int = 0
    amount: float = 0.0


class KittyTotal(BaseModel):
    kitty_id: str
    name: str
    amount: float
    currency: str


class DashboardResponse(BaseModel):
    total_expenses: float
    total_kitties: int
    category_breakdown: Dict[str, float]
    top_spenders: List[TopSpender]
    recent_expenses: List[RecentExpense]
    pending_settlements: List[PendingSettlement]
    total_pending: float
    monthly_expenses: List[float]            # Jan..Dec of the current year
    current_month_expenses: float
    previous_month_expenses: float
    expenses_by_day: Dict[str, DayActivity]  # YYYY-MM-DD (UTC)
    kitty_comparison: List[KittyTotal]
