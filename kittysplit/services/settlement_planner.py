import logging
from typing import List, Sequence

from kittysplit.models.ledger import LedgerEntry, ProposedTransaction

logger = logging.getLogger(__name__)

# One minor currency unit; smaller balances count as settled.
EPSILON = 0.01


class _Party:
    __slots__ = ("identity", "name", "remaining")

    def __init__(self, entry: LedgerEntry, remaining: float):
        self.identity = entry.identity
        self.name = entry.name
        self.remaining = remaining


def plan_settlements(
    ledger: Sequence[LedgerEntry],
    epsilon: float = EPSILON
) -> List[ProposedTransaction]:
    """
    Greedy settle-up plan: the largest remaining debtor pays the largest
    remaining creditor until one side runs out.

    Every step exhausts at least one party, so the plan has at most
    len(debtors) + len(creditors) - 1 transactions. Ties are broken by
    ledger order, so a stable member ordering gives a stable plan.

    Amounts are rounded to cents only when a transaction is emitted.
    """
    debtors = [
        _Party(e, e.net)
        for e in sorted((e for e in ledger if e.net > epsilon), key=lambda e: -e.net)
    ]
    creditors = [
        _Party(e, -e.net)
        for e in sorted((e for e in ledger if e.net < -epsilon), key=lambda e: e.net)
    ]

    plan: List[ProposedTransaction] = []

    while debtors and creditors:
        debtor = max(debtors, key=lambda p: p.remaining)
        creditor = max(creditors, key=lambda p: p.remaining)

        amount = min(debtor.remaining, creditor.remaining)
        if amount > epsilon:
            plan.append(ProposedTransaction(
                from_key=debtor.identity,
                to_key=creditor.identity,
                from_name=debtor.name,
                to_name=creditor.name,
                amount=round(amount, 2)
            ))

        debtor.remaining -= amount
        creditor.remaining -= amount

        if debtor.remaining <= epsilon:
            debtors.remove(debtor)
        if creditor.remaining <= epsilon:
            creditors.remove(creditor)

    logger.debug("Planned %d settlement transaction(s)", len(plan))
    return plan
