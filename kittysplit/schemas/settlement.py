from pydantic import BaseModel, Field


class SettlementToggle(BaseModel):
    """Mark a planned transaction settled, or flip it back to pending."""
    from_key: str
    to_key: str
    amount: float = Field(..., gt=0)
