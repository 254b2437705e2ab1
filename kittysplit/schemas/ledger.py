from typing import List
from pydantic import BaseModel

from kittysplit.models.kitty import SettlementRecord
from kittysplit.models.ledger import TrackedTransaction
from kittysplit.schemas.kitty import KittyResponse


class BalanceResponse(BaseModel):
    """Member balance rounded for display. net > 0 owes, net < 0 is owed."""
    identity: str
    name: str
    paid: float
    owed: float
    net: float


class SettlementPlanResponse(BaseModel):
    currency: str
    transactions: List[TrackedTransaction]
    history: List[SettlementRecord]
    settled_up: bool


class KittySummaryResponse(BaseModel):
    kitty: KittyResponse
    balances: List[BalanceResponse]
    settlements: SettlementPlanResponse
