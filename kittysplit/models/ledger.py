"""
Derived ledger types.

Nothing here is stored. Entries and proposed transactions are recomputed
from a kitty's members and expenses on every read.

Sign convention: net = owed - paid
- Positive: member owes money
- Negative: member is owed money
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field


class LedgerEntry(BaseModel):
    """Per-member totals for one snapshot of a kitty's expenses."""
    model_config = ConfigDict(frozen=True)

    identity: str
    name: str = ""
    paid: float = 0.0
    owed: float = 0.0   # fair share across expenses the member took part in

    @computed_field
    @property
    def net(self) -> float:
        return self.owed - self.paid


class ProposedTransaction(BaseModel):
    """One directed payment in a settlement plan: from_key pays to_key."""
    model_config = ConfigDict(frozen=True)

    from_key: str
    to_key: str
    from_name: str = ""
    to_name: str = ""
    amount: float = Field(gt=0)


class TrackedTransaction(ProposedTransaction):
    """A proposed transaction with its settled status from history."""
    settled: bool = False
