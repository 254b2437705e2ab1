"""
Settlement tracking.

Each conceptual transaction (from, to, amount rounded to cents) is in one
of three states:

    absent  --toggle-->  settled      (new record appended)
    settled --toggle-->  pending      (record flipped in place)
    pending --toggle-->  settled

Records are never removed. A freshly computed plan is matched against the
records by exact (from, to, amount) equality after rounding, so a plan whose
amounts drift by a cent shows the transaction as pending again while the
old record stays in history.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from pymongo.errors import PyMongoError

from kittysplit.models.base import _utcnow
from kittysplit.models.kitty import Kitty, SettlementRecord
from kittysplit.models.ledger import ProposedTransaction, TrackedTransaction
from kittysplit.repositories.kitty_repo import KittyRepository, KittyNotFoundError

logger = logging.getLogger(__name__)


class SettlementError(Exception):
    """Base error for settlement toggles."""
    pass


class UnknownSettlementError(SettlementError):
    """Toggled transaction is neither planned nor recorded."""
    pass


class SettlementWriteError(SettlementError):
    """Persisting a toggle failed; nothing was changed."""
    pass


class SettlementConflictError(SettlementWriteError):
    """Kitty changed between read and write."""
    pass


def find_record(
    records: Sequence[SettlementRecord],
    from_key: str,
    to_key: str,
    amount: float
) -> Optional[int]:
    """Index of the record matching the transaction, or None."""
    for i, record in enumerate(records):
        if record.matches(from_key, to_key, amount):
            return i
    return None


def track(
    plan: Sequence[ProposedTransaction],
    records: Sequence[SettlementRecord]
) -> List[TrackedTransaction]:
    """Attach settled status from history to each planned transaction."""
    tracked = []
    for tx in plan:
        i = find_record(records, tx.from_key, tx.to_key, tx.amount)
        settled = i is not None and records[i].settled
        tracked.append(TrackedTransaction(**tx.model_dump(), settled=settled))
    return tracked


def history(
    plan: Sequence[ProposedTransaction],
    records: Sequence[SettlementRecord]
) -> List[SettlementRecord]:
    """Records that no longer correspond to any planned transaction."""
    return [
        record for record in records
        if not any(record.matches(tx.from_key, tx.to_key, tx.amount) for tx in plan)
    ]


def toggle_records(
    records: Sequence[SettlementRecord],
    from_key: str,
    to_key: str,
    amount: float,
    from_name: str = "",
    to_name: str = ""
) -> Tuple[List[SettlementRecord], SettlementRecord]:
    """
    Return a new record list with the transaction toggled, and the
    toggled record. The input list is left untouched.
    """
    amount = round(amount, 2)
    updated = [record.model_copy() for record in records]

    i = find_record(updated, from_key, to_key, amount)
    if i is None:
        record = SettlementRecord(
            from_key=from_key,
            to_key=to_key,
            from_name=from_name,
            to_name=to_name,
            amount=amount,
            settled=True
        )
        updated.append(record)
    else:
        record = updated[i].model_copy(update={
            "settled": not updated[i].settled,
            "updated_at": _utcnow()
        })
        updated[i] = record

    return updated, record


class SettlementTracker:
    """Writes settlement toggles through to the kitty document."""

    def __init__(self, repo: KittyRepository):
        self.repo = repo

    async def toggle(
        self,
        kitty: Kitty,
        plan: Sequence[ProposedTransaction],
        from_key: str,
        to_key: str,
        amount: float
    ) -> Kitty:
        """
        Toggle one transaction and persist the full settlements array.

        The caller's kitty is not modified. Returns the kitty as stored
        after the write, so the caller can recompute from fresh state.
        """
        amount = round(amount, 2)

        planned = next(
            (tx for tx in plan
             if tx.from_key == from_key and tx.to_key == to_key and tx.amount == amount),
            None
        )
        if planned is None and find_record(kitty.settlements, from_key, to_key, amount) is None:
            raise UnknownSettlementError(
                f"No planned or recorded settlement {from_key} -> {to_key} for {amount:.2f}"
            )

        records, record = toggle_records(
            kitty.settlements,
            from_key,
            to_key,
            amount,
            from_name=planned.from_name if planned else "",
            to_name=planned.to_name if planned else ""
        )

        try:
            stored = await self.repo.replace_settlements(
                str(kitty.id), records, expected_version=kitty.version
            )
        except PyMongoError as e:
            logger.error("Settlement write failed for kitty %s: %s", kitty.id, e)
            raise SettlementWriteError("Could not save settlement") from e

        if stored is None:
            if await self.repo.get_kitty(str(kitty.id)) is None:
                raise KittyNotFoundError(f"Kitty {kitty.id} not found")
            logger.warning(
                "Settlement toggle conflict on kitty %s (version %d)", kitty.id, kitty.version
            )
            raise SettlementConflictError("Kitty was modified, reload and try again")

        logger.info(
            "Settlement %s -> %s %.2f marked %s on kitty %s",
            from_key, to_key, amount,
            "settled" if record.settled else "pending",
            kitty.id
        )
        return stored
