"""Tests for kitty repository against a mocked Motor collection."""
import pytest
from unittest.mock import MagicMock, AsyncMock
from bson import ObjectId
from pymongo import ReturnDocument

from kittysplit.models.kitty import Member, Expense, SettlementRecord
from kittysplit.repositories.kitty_repo import KittyRepository


@pytest.mark.asyncio
class TestKittyRepository:
    """KittyRepository document operations."""

    async def test_create_kitty_inserts_owner(self, mock_db):
        collection = mock_db["kitties"]
        collection.insert_one.return_value = MagicMock(inserted_id=ObjectId())
        repo = KittyRepository(mock_db)

        kitty = await repo.create_kitty(Member(user_id="u1", name="Ann"), "Flat", "", "€")

        doc = collection.insert_one.call_args[0][0]
        assert doc["name"] == "Flat"
        assert doc["currency"] == "€"
        assert doc["created_by"] == "u1"
        assert doc["members"][0]["is_owner"] is True
        assert doc["version"] == 1
        assert kitty.id == collection.insert_one.return_value.inserted_id

    async def test_get_kitty_invalid_id(self, mock_db):
        repo = KittyRepository(mock_db)

        assert await repo.get_kitty("not-an-id") is None
        mock_db["kitties"].find_one.assert_not_called()

    async def test_get_kitty_found(self, mock_db, make_kitty):
        kitty = make_kitty()
        mock_db["kitties"].find_one.return_value = kitty.model_dump(by_alias=True)
        repo = KittyRepository(mock_db)

        found = await repo.get_kitty(str(kitty.id))

        assert found.id == kitty.id
        assert [m.name for m in found.members] == ["A", "B", "C"]
        query = mock_db["kitties"].find_one.call_args[0][0]
        assert query == {"_id": kitty.id, "is_deleted": False}

    async def test_list_kitties_matches_invites(self, mock_db):
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.to_list = AsyncMock(return_value=[])
        mock_db["kitties"].find = MagicMock(return_value=cursor)
        repo = KittyRepository(mock_db)

        await repo.list_kitties("u1", "ann@example.com")

        query = mock_db["kitties"].find.call_args[0][0]
        assert {"members.email": "ann@example.com"} in query["$or"]
        assert query["is_deleted"] is False

    async def test_replace_settlements_is_version_guarded(self, mock_db, make_kitty):
        kitty = make_kitty(version=5)
        stored = kitty.model_dump(by_alias=True)
        stored["version"] = 6
        mock_db["kitties"].find_one_and_update.return_value = stored
        repo = KittyRepository(mock_db)
        records = [SettlementRecord(from_key="b", to_key="a", amount=10)]

        result = await repo.replace_settlements(str(kitty.id), records, expected_version=5)

        query, update = mock_db["kitties"].find_one_and_update.call_args[0]
        assert query["version"] == 5
        assert update["$inc"] == {"version": 1}
        assert update["$set"]["settlements"][0]["amount"] == 10
        assert mock_db["kitties"].find_one_and_update.call_args[1]["return_document"] == ReturnDocument.AFTER
        assert result.version == 6

    async def test_replace_settlements_conflict_returns_none(self, mock_db, make_kitty):
        kitty = make_kitty()
        repo = KittyRepository(mock_db)

        assert await repo.replace_settlements(str(kitty.id), [], expected_version=1) is None

    async def test_push_expense_increments_total(self, mock_db, make_kitty):
        kitty = make_kitty()
        mock_db["kitties"].find_one_and_update.return_value = kitty.model_dump(by_alias=True)
        repo = KittyRepository(mock_db)

        await repo.push_expense(str(kitty.id), Expense(amount=12.5, paid_by="a", participants=["a"]))

        update = mock_db["kitties"].find_one_and_update.call_args[0][1]
        assert update["$inc"] == {"total_amount": 12.5, "version": 1}
        assert update["$push"]["expenses"]["paid_by"] == "a"

    async def test_pull_member_never_pulls_owner(self, mock_db, make_kitty):
        kitty = make_kitty()
        repo = KittyRepository(mock_db)

        await repo.pull_member(str(kitty.id), kitty.members[1].member_id)

        update = mock_db["kitties"].find_one_and_update.call_args[0][1]
        assert update["$pull"]["members"] == {
            "member_id": kitty.members[1].member_id,
            "is_owner": False
        }
        assert update["$inc"] == {"version": 1}

    async def test_soft_delete(self, mock_db, make_kitty):
        mock_db["kitties"].update_one.return_value = MagicMock(modified_count=1)
        repo = KittyRepository(mock_db)

        assert await repo.soft_delete_kitty(str(make_kitty().id)) is True

    async def test_push_member_guards_on_email(self, mock_db, make_kitty):
        kitty = make_kitty()
        repo = KittyRepository(mock_db)

        result = await repo.push_member(str(kitty.id), Member(email="dan@example.com", name="Dan"))

        query, update = mock_db["kitties"].find_one_and_update.call_args[0]
        assert query["members.email"] == {"$ne": "dan@example.com"}
        assert update["$inc"] == {"version": 1}
        assert result is None

    async def test_push_member_without_email_is_unguarded(self, mock_db, make_kitty):
        kitty = make_kitty()
        repo = KittyRepository(mock_db)

        await repo.push_member(str(kitty.id), Member(user_id="u9", name="Ivy"))

        query = mock_db["kitties"].find_one_and_update.call_args[0][0]
        assert "members.email" not in query
