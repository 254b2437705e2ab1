import logging
from typing import Dict, Iterable, List

from kittysplit.models.kitty import Expense
from kittysplit.models.ledger import LedgerEntry
from kittysplit.services.member_registry import identity_of, display_name

logger = logging.getLogger(__name__)


def compute_balances(members: Iterable, expenses: Iterable[Expense]) -> List[LedgerEntry]:
    """
    Fold expenses into one ledger entry per member.

    Algorithm:
    1. Start every member at paid = 0, owed = 0
    2. Credit each expense's full amount to its payer
    3. Split each expense evenly over its participants and add the share to
       each participant's owed
    4. net = owed - paid

    Payers or participants who are no longer members are skipped: their part
    of the expense is dropped, not redistributed, so old expenses stay
    viewable after someone leaves. Expenses with a non-positive amount or no
    participants contribute nothing.

    Entries come back in member order.
    """
    order: List[str] = []
    names: Dict[str, str] = {}
    paid: Dict[str, float] = {}
    owed: Dict[str, float] = {}

    for member in members:
        key = identity_of(member)
        if key in paid:
            continue
        order.append(key)
        names[key] = display_name(member)
        paid[key] = 0.0
        owed[key] = 0.0

    skipped = 0
    for expense in expenses:
        participants = list(dict.fromkeys(expense.participants))
        if expense.amount <= 0 or not participants:
            logger.warning(
                "Ignoring malformed expense %s (amount=%s, participants=%d)",
                expense.id, expense.amount, len(participants)
            )
            continue

        if expense.paid_by in paid:
            paid[expense.paid_by] += expense.amount
        else:
            skipped += 1

        per_head = expense.amount / len(participants)
        for key in participants:
            if key in owed:
                owed[key] += per_head

    if skipped:
        logger.debug("%d expense(s) paid by former members", skipped)

    return [
        LedgerEntry(identity=key, name=names[key], paid=paid[key], owed=owed[key])
        for key in order
    ]
