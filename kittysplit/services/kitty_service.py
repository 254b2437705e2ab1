import logging
from typing import List, Optional

from kittysplit.core.auth import CurrentUser
from kittysplit.core.config import settings
from kittysplit.models.kitty import Kitty, Member, Expense
from kittysplit.models.ledger import LedgerEntry, ProposedTransaction
from kittysplit.repositories.kitty_repo import KittyRepository, KittyNotFoundError, MemberError
from kittysplit.schemas.kitty import (
    ExpenseCreate,
    ExpenseResponse,
    KittyListItem,
    KittyResponse,
    MemberResponse,
)
from kittysplit.schemas.ledger import BalanceResponse, KittySummaryResponse, SettlementPlanResponse
from kittysplit.services.balance_engine import compute_balances
from kittysplit.services.member_registry import identity_of, index_members, display_name
from kittysplit.services.settlement_planner import plan_settlements
from kittysplit.services.settlement_tracker import SettlementTracker, track, history
from kittysplit.utils.expense_validation import normalize_participants, validate_expense

logger = logging.getLogger(__name__)

YOU = "You"
CLAIM_ATTEMPTS = 2


class KittyAccessError(Exception):
    """User is not a member of the kitty."""
    pass


def normalize_email(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else email


def is_current_user(member: Member, user: CurrentUser) -> bool:
    if member.user_id:
        return member.user_id == user.id
    return bool(user.email) and normalize_email(member.email) == normalize_email(user.email)


class KittyService:
    """Kitty lifecycle plus the derived balances and settle-up plan."""

    def __init__(self, repo: KittyRepository, epsilon: float | None = None):
        self.repo = repo
        self.epsilon = settings.SETTLEMENT_EPSILON if epsilon is None else epsilon
        self.tracker = SettlementTracker(repo)

    # ===== KITTIES =====

    async def create(
        self,
        user: CurrentUser,
        name: str,
        description: str = "",
        currency: str | None = None
    ) -> Kitty:
        owner = Member(
            user_id=user.id,
            email=normalize_email(user.email),
            name=user.name or (user.email.split("@")[0] if user.email else YOU),
            is_owner=True
        )
        kitty = await self.repo.create_kitty(
            owner, name, description, currency or settings.DEFAULT_CURRENCY
        )
        logger.info("Created kitty %s for user %s", kitty.id, user.id)
        return kitty

    async def list_for(self, user: CurrentUser) -> List[Kitty]:
        return await self.repo.list_kitties(user.id, normalize_email(user.email))

    async def get_for(self, kitty_id: str, user: CurrentUser) -> Kitty:
        """Load a kitty the user belongs to, claiming an email invite if needed."""
        kitty = await self.repo.get_kitty(kitty_id)
        if kitty is None:
            raise KittyNotFoundError(f"Kitty {kitty_id} not found")

        member = next((m for m in kitty.members if is_current_user(m, user)), None)
        if member is None:
            raise KittyAccessError("You are not a member of this kitty")

        if member.user_id is None:
            kitty = await self.claim_membership(kitty, member, user)
        return kitty

    async def delete(self, kitty: Kitty, user: CurrentUser) -> None:
        owner = kitty.owner()
        if owner is None or not is_current_user(owner, user):
            raise KittyAccessError("Only the owner can delete a kitty")
        if not await self.repo.soft_delete_kitty(str(kitty.id)):
            raise KittyNotFoundError(f"Kitty {kitty.id} not found")
        logger.info("Deleted kitty %s", kitty.id)

    # ===== MEMBERS =====

    async def add_member(self, kitty: Kitty, email: str, name: str | None = None) -> Kitty:
        email = normalize_email(email)
        member = Member(email=email, name=name or email.split("@")[0])
        key = identity_of(member)
        if any(identity_of(m) == key or normalize_email(m.email) == email for m in kitty.members):
            raise MemberError(f"{email} is already a member")

        updated = await self.repo.push_member(str(kitty.id), member)
        if updated is None:
            # The write is guarded on the email too
            if await self.repo.get_kitty(str(kitty.id)) is None:
                raise KittyNotFoundError(f"Kitty {kitty.id} not found")
            raise MemberError(f"{email} is already a member")
        logger.info("Added member %s to kitty %s", key, kitty.id)
        return updated

    async def remove_member(self, kitty: Kitty, identity: str) -> Kitty:
        """Remove a member. Their past expenses stay; their shares are dropped."""
        member = index_members(kitty.members).get(identity)
        if member is None:
            raise MemberError(f"No member {identity} in this kitty")
        if member.is_owner:
            raise MemberError("The kitty owner cannot be removed")

        updated = await self.repo.pull_member(str(kitty.id), member.member_id)
        if updated is None:
            raise KittyNotFoundError(f"Kitty {kitty.id} not found")
        logger.info("Removed member %s from kitty %s", identity, kitty.id)
        return updated

    async def claim_membership(self, kitty: Kitty, member: Member, user: CurrentUser) -> Kitty:
        """
        Attach a registered user to their email invite.

        The member's identity key changes from the email to the user id, so
        expense and settlement references are rewritten in the same update.
        """
        kitty_id = str(kitty.id)
        old_key = identity_of(member)
        for _ in range(CLAIM_ATTEMPTS):
            updated = await self._rewrite_identity(kitty, member, old_key, user.id)
            if updated is not None:
                logger.info("User %s claimed invite %s on kitty %s", user.id, old_key, kitty.id)
                return updated

            # Some other write bumped the version; retry on a fresh read
            logger.warning("Membership claim conflict on kitty %s", kitty_id)
            kitty = await self.repo.get_kitty(kitty_id)
            if kitty is None:
                raise KittyNotFoundError(f"Kitty {kitty_id} not found")
            member = next((m for m in kitty.members if m.member_id == member.member_id), None)
            if member is None or member.user_id is not None:
                # Already claimed or removed meanwhile
                return kitty

        # Still an email invite; the next read claims it again
        return kitty

    async def _rewrite_identity(
        self,
        kitty: Kitty,
        member: Member,
        old_key: str,
        new_key: str
    ) -> Optional[Kitty]:
        def swap(key: str) -> str:
            return new_key if key == old_key else key

        members = [
            m.model_copy(update={"user_id": new_key}) if m.member_id == member.member_id else m
            for m in kitty.members
        ]
        expenses = [
            e.model_copy(update={
                "paid_by": swap(e.paid_by),
                "participants": [swap(p) for p in e.participants]
            })
            for e in kitty.expenses
        ]
        settlements = [
            s.model_copy(update={"from_key": swap(s.from_key), "to_key": swap(s.to_key)})
            for s in kitty.settlements
        ]

        return await self.repo.update_versioned(str(kitty.id), kitty.version, {
            "members": [m.model_dump() for m in members],
            "expenses": [e.model_dump() for e in expenses],
            "settlements": [s.model_dump() for s in settlements],
        })

    # ===== EXPENSES =====

    async def add_expense(self, kitty: Kitty, expense_in: ExpenseCreate) -> Kitty:
        participants = normalize_participants(expense_in.participants, kitty.members)
        validate_expense(expense_in.amount, expense_in.paid_by, participants, kitty.members)

        payer = index_members(kitty.members)[expense_in.paid_by]
        expense = Expense(
            description=expense_in.description,
            amount=expense_in.amount,
            category=expense_in.category,
            notes=expense_in.notes,
            paid_by=expense_in.paid_by,
            paid_by_name=display_name(payer),
            participants=participants
        )

        updated = await self.repo.push_expense(str(kitty.id), expense)
        if updated is None:
            raise KittyNotFoundError(f"Kitty {kitty.id} not found")
        logger.info(
            "Added expense %s (%.2f, %d participants) to kitty %s",
            expense.id, expense.amount, len(participants), kitty.id
        )
        return updated

    async def delete_expense(self, kitty: Kitty, expense_id: str) -> Kitty:
        expense = next((e for e in kitty.expenses if e.id == expense_id), None)
        if expense is None:
            raise KittyNotFoundError(f"Expense {expense_id} not found")

        updated = await self.repo.pull_expense(str(kitty.id), expense)
        if updated is None:
            raise KittyNotFoundError(f"Kitty {kitty.id} not found")
        logger.info("Deleted expense %s from kitty %s", expense_id, kitty.id)
        return updated

    # ===== BALANCES & SETTLEMENTS =====

    def balances(self, kitty: Kitty) -> List[LedgerEntry]:
        return compute_balances(kitty.members, kitty.expenses)

    def plan(self, kitty: Kitty) -> List[ProposedTransaction]:
        return plan_settlements(self.balances(kitty), self.epsilon)

    async def toggle_settlement(
        self,
        kitty: Kitty,
        user: CurrentUser,
        from_key: str,
        to_key: str,
        amount: float
    ) -> KittySummaryResponse:
        """Toggle a settlement and return the summary recomputed from stored state."""
        stored = await self.tracker.toggle(kitty, self.plan(kitty), from_key, to_key, amount)
        return self.summary(stored, user)

    def summary(self, kitty: Kitty, user: Optional[CurrentUser] = None) -> KittySummaryResponse:
        ledger = self.balances(kitty)
        plan = plan_settlements(ledger, self.epsilon)
        you = self._user_key(kitty, user)

        def label(key: str, name: str) -> str:
            return YOU if key == you else name

        balances = [
            BalanceResponse(
                identity=e.identity,
                name=label(e.identity, e.name),
                paid=round(e.paid, 2),
                owed=round(e.owed, 2),
                net=round(e.net, 2)
            )
            for e in ledger
        ]
        transactions = [
            tx.model_copy(update={
                "from_name": label(tx.from_key, tx.from_name),
                "to_name": label(tx.to_key, tx.to_name)
            })
            for tx in track(plan, kitty.settlements)
        ]

        return KittySummaryResponse(
            kitty=self.to_response(kitty, you),
            balances=balances,
            settlements=SettlementPlanResponse(
                currency=kitty.currency,
                transactions=transactions,
                history=history(plan, kitty.settlements),
                settled_up=not plan
            )
        )

    # ===== PRESENTATION =====

    @staticmethod
    def _user_key(kitty: Kitty, user: Optional[CurrentUser]) -> Optional[str]:
        if user is None:
            return None
        member = next((m for m in kitty.members if is_current_user(m, user)), None)
        return identity_of(member) if member else None

    @staticmethod
    def to_response(kitty: Kitty, you: Optional[str] = None) -> KittyResponse:
        return KittyResponse(
            id=str(kitty.id),
            name=kitty.name,
            description=kitty.description,
            currency=kitty.currency,
            created_by=kitty.created_by,
            members=[
                MemberResponse(
                    identity=identity_of(m),
                    member_id=m.member_id,
                    user_id=m.user_id,
                    email=m.email,
                    name=YOU if identity_of(m) == you else m.name,
                    is_owner=m.is_owner,
                    joined_at=m.joined_at
                )
                for m in kitty.members
            ],
            expenses=[ExpenseResponse.model_validate(e) for e in kitty.expenses],
            total_amount=round(kitty.total_amount, 2),
            created_at=kitty.created_at,
            updated_at=kitty.updated_at
        )

    @staticmethod
    def to_list_item(kitty: Kitty) -> KittyListItem:
        return KittyListItem(
            id=str(kitty.id),
            name=kitty.name,
            description=kitty.description,
            currency=kitty.currency,
            member_count=len(kitty.members),
            expense_count=len(kitty.expenses),
            total_amount=round(kitty.total_amount, 2),
            created_at=kitty.created_at
        )
