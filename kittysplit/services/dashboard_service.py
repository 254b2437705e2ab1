from datetime import datetime, timezone
from typing import Dict, List, Optional

from kittysplit.core.auth import CurrentUser
from kittysplit.models.kitty import Kitty
from kittysplit.schemas.dashboard import (
    DashboardResponse,
    DayActivity,
    KittyTotal,
    PendingSettlement,
    RecentExpense,
    TopSpender,
)
from kittysplit.services.kitty_service import KittyService, is_current_user
from kittysplit.services.member_registry import identity_of
from kittysplit.services.settlement_tracker import track

TOP_SPENDERS = 5
RECENT_EXPENSES = 10


def _as_utc(value: datetime) -> datetime:
    # Mongo hands back naive UTC datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _previous_month(now: datetime) -> tuple:
    if now.month == 1:
        return now.year - 1, 12
    return now.year, now.month - 1


class DashboardService:
    """Cross-kitty overview for one user."""

    def __init__(self, kitties: KittyService):
        self.kitties = kitties

    async def dashboard_for(self, user: CurrentUser) -> DashboardResponse:
        kitties = await self.kitties.list_for(user)
        return self.build(kitties, user)

    def build(
        self,
        kitties: List[Kitty],
        user: CurrentUser,
        now: Optional[datetime] = None
    ) -> DashboardResponse:
        """
        Aggregate every expense the user can see.

        Monthly buckets cover the calendar year of `now`; the previous month
        rolls back into December of last year in January.
        """
        now = _as_utc(now or datetime.now(timezone.utc))
        previous = _previous_month(now)

        total_expenses = 0.0
        categories: Dict[str, float] = {}
        spenders: Dict[str, TopSpender] = {}
        recent: List[RecentExpense] = []
        pending: List[PendingSettlement] = []
        monthly = [0.0] * 12
        current_month = 0.0
        previous_month = 0.0
        by_day: Dict[str, DayActivity] = {}
        per_kitty: List[KittyTotal] = []

        for kitty in kitties:
            total_expenses += kitty.total_amount
            kitty_total = 0.0

            for expense in kitty.expenses:
                kitty_total += expense.amount

                category = expense.category or "uncategorized"
                categories[category] = categories.get(category, 0.0) + expense.amount

                spender = spenders.setdefault(
                    expense.paid_by,
                    TopSpender(identity=expense.paid_by, name=expense.paid_by_name, total=0.0, count=0)
                )
                spender.total += expense.amount
                spender.count += 1

                created = _as_utc(expense.created_at)
                if created.year == now.year:
                    monthly[created.month - 1] += expense.amount
                    if created.month == now.month:
                        current_month += expense.amount
                if (created.year, created.month) == previous:
                    previous_month += expense.amount

                day = by_day.setdefault(created.date().isoformat(), DayActivity())
                day.count += 1
                day.amount += expense.amount

                recent.append(RecentExpense(
                    id=expense.id,
                    kitty_id=str(kitty.id),
                    kitty_name=kitty.name,
                    description=expense.description,
                    category=category,
                    amount=expense.amount,
                    currency=kitty.currency,
                    paid_by_name=expense.paid_by_name,
                    created_at=expense.created_at
                ))

            per_kitty.append(KittyTotal(
                kitty_id=str(kitty.id),
                name=kitty.name,
                amount=round(kitty_total, 2),
                currency=kitty.currency
            ))
            pending.extend(self._pending_for(kitty, user))

        top = sorted(spenders.values(), key=lambda s: s.total, reverse=True)[:TOP_SPENDERS]
        for spender in top:
            spender.total = round(spender.total, 2)
        recent.sort(key=lambda e: _as_utc(e.created_at), reverse=True)
        for day in by_day.values():
            day.amount = round(day.amount, 2)

        return DashboardResponse(
            total_expenses=round(total_expenses, 2),
            total_kitties=len(kitties),
            category_breakdown={k: round(v, 2) for k, v in categories.items()},
            top_spenders=top,
            recent_expenses=recent[:RECENT_EXPENSES],
            pending_settlements=pending,
            total_pending=round(sum(p.amount for p in pending), 2),
            monthly_expenses=[round(m, 2) for m in monthly],
            current_month_expenses=round(current_month, 2),
            previous_month_expenses=round(previous_month, 2),
            expenses_by_day=dict(sorted(by_day.items())),
            kitty_comparison=sorted(per_kitty, key=lambda k: k.amount, reverse=True)
        )

    def _pending_for(self, kitty: Kitty, user: CurrentUser) -> List[PendingSettlement]:
        """The user's outgoing planned payments not yet marked settled."""
        member = next((m for m in kitty.members if is_current_user(m, user)), None)
        if member is None:
            return []
        key = identity_of(member)

        return [
            PendingSettlement(
                kitty_id=str(kitty.id),
                kitty_name=kitty.name,
                to_key=tx.to_key,
                to_name=tx.to_name,
                amount=tx.amount,
                currency=kitty.currency
            )
            for tx in track(self.kitties.plan(kitty), kitty.settlements)
            if tx.from_key == key and not tx.settled
        ]
