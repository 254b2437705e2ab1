"""
KittyRepository - Kitty documents in MongoDB.

Members, expenses and settlement records are embedded arrays on the kitty
document. Writes that rewrite whole arrays (settlement toggles, membership
claims) go through update_versioned, which only applies when the stored
version still matches what the caller read.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from bson import ObjectId

from kittysplit.models.kitty import Kitty, Member, Expense, SettlementRecord


class KittyNotFoundError(Exception):
    """Kitty does not exist or was deleted."""
    pass


class MemberError(Exception):
    """Invalid membership change."""
    pass


def _oid(kitty_id: str) -> Optional[ObjectId]:
    if isinstance(kitty_id, ObjectId):
        return kitty_id
    if ObjectId.is_valid(kitty_id):
        return ObjectId(kitty_id)
    return None


class KittyRepository:
    """Kitty database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["kitties"]

    async def create_kitty(
        self,
        owner: Member,
        name: str,
        description: str,
        currency: str
    ) -> Kitty:
        """Create a new kitty with the owner as its only member."""
        owner.is_owner = True
        kitty = Kitty(
            name=name,
            description=description,
            currency=currency,
            created_by=owner.user_id or owner.member_id,
            members=[owner],
        )
        doc = kitty.model_dump(by_alias=True)
        result = await self.collection.insert_one(doc)
        kitty.id = result.inserted_id
        return kitty

    async def get_kitty(self, kitty_id: str) -> Optional[Kitty]:
        """Get a kitty by id."""
        oid = _oid(kitty_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid, "is_deleted": False})
        if doc:
            return Kitty(**doc)
        return None

    async def list_kitties(self, user_id: str, email: str | None = None) -> List[Kitty]:
        """List kitties the user belongs to, by user id or invite email."""
        clauses: List[Dict[str, Any]] = [
            {"created_by": user_id},
            {"members.user_id": user_id},
        ]
        if email:
            clauses.append({"members.email": email})

        cursor = self.collection.find({
            "$or": clauses,
            "is_deleted": False
        }).sort("created_at", -1)
        docs = await cursor.to_list(None)
        return [Kitty(**doc) for doc in docs]

    async def push_member(self, kitty_id: str, member: Member) -> Optional[Kitty]:
        """
        Append a member unless one with the same email is already there.

        Returns None when the kitty is missing or the email is taken.
        """
        guard = {"members.email": {"$ne": member.email}} if member.email else None
        return await self._update(kitty_id, {
            "$push": {"members": member.model_dump()},
            "$set": {"updated_at": datetime.now(timezone.utc)}
        }, guard)

    async def pull_member(self, kitty_id: str, member_id: str) -> Optional[Kitty]:
        """Remove a member by surrogate member_id."""
        return await self._update(kitty_id, {
            "$pull": {"members": {"member_id": member_id, "is_owner": False}},
            "$set": {"updated_at": datetime.now(timezone.utc)}
        })

    async def push_expense(self, kitty_id: str, expense: Expense) -> Optional[Kitty]:
        """Append an expense and add it to the running total."""
        return await self._update(kitty_id, {
            "$push": {"expenses": expense.model_dump()},
            "$inc": {"total_amount": expense.amount},
            "$set": {"updated_at": datetime.now(timezone.utc)}
        })

    async def pull_expense(self, kitty_id: str, expense: Expense) -> Optional[Kitty]:
        """Remove an expense and subtract it from the running total."""
        return await self._update(kitty_id, {
            "$pull": {"expenses": {"id": expense.id}},
            "$inc": {"total_amount": -expense.amount},
            "$set": {"updated_at": datetime.now(timezone.utc)}
        })

    async def update_versioned(
        self,
        kitty_id: str,
        expected_version: int,
        updates: Dict[str, Any]
    ) -> Optional[Kitty]:
        """
        Apply $set updates only if the stored version is expected_version.

        Returns the updated kitty, or None on a version mismatch (another
        writer got there first). Driver errors propagate.
        """
        oid = _oid(kitty_id)
        if oid is None:
            return None

        updates = dict(updates)
        updates["updated_at"] = datetime.now(timezone.utc)

        result = await self.collection.find_one_and_update(
            {
                "_id": oid,
                "is_deleted": False,
                "version": expected_version  # Optimistic lock
            },
            {
                "$set": updates,
                "$inc": {"version": 1}
            },
            return_document=ReturnDocument.AFTER
        )
        if result:
            return Kitty(**result)
        return None

    async def replace_settlements(
        self,
        kitty_id: str,
        settlements: List[SettlementRecord],
        expected_version: int
    ) -> Optional[Kitty]:
        """Replace the whole settlements array."""
        return await self.update_versioned(
            kitty_id,
            expected_version,
            {"settlements": [s.model_dump() for s in settlements]}
        )

    async def soft_delete_kitty(self, kitty_id: str) -> bool:
        """Soft delete a kitty."""
        oid = _oid(kitty_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "is_deleted": False},
            {"$set": {
                "is_deleted": True,
                "updated_at": datetime.now(timezone.utc)
            }}
        )
        return result.modified_count > 0

    async def _update(
        self,
        kitty_id: str,
        update: Dict[str, Any],
        guard: Optional[Dict[str, Any]] = None
    ) -> Optional[Kitty]:
        """Targeted update; bumps version so versioned rewrites see it."""
        oid = _oid(kitty_id)
        if oid is None:
            return None
        query = {"_id": oid, "is_deleted": False}
        if guard:
            query.update(guard)
        update = dict(update)
        update["$inc"] = {**update.get("$inc", {}), "version": 1}
        result = await self.collection.find_one_and_update(
            query,
            update,
            return_document=ReturnDocument.AFTER
        )
        if result:
            return Kitty(**result)
        return None
