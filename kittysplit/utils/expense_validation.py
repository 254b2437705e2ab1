"""Expense validation utilities."""
from typing import Iterable, List, Optional

from kittysplit.services.member_registry import identity_of


class ExpenseValidationError(Exception):
    """Custom exception for expense validation errors."""
    pass


def normalize_participants(
    participants: Optional[Iterable[str]],
    members: Iterable
) -> List[str]:
    """
    Deduplicate participant keys, keeping first-seen order.

    No participants means everyone currently in the kitty.
    """
    if not participants:
        return [identity_of(m) for m in members]
    return list(dict.fromkeys(participants))


def validate_expense(
    amount: float,
    paid_by: str,
    participants: List[str],
    members: Iterable
) -> None:
    """
    Validate an expense before it is stored.

    Rules:
    - amount must be positive
    - at least one participant
    - payer and every participant must be current members
    """
    if amount is None or amount <= 0:
        raise ExpenseValidationError(f"Expense amount must be positive, got {amount}")

    if not participants:
        raise ExpenseValidationError("Expense must have at least one participant")

    keys = {identity_of(m) for m in members}

    if paid_by not in keys:
        raise ExpenseValidationError(f"Payer '{paid_by}' is not a member of this kitty")

    unknown = [p for p in participants if p not in keys]
    if unknown:
        raise ExpenseValidationError(
            f"Participants not in this kitty: {', '.join(unknown)}"
        )
