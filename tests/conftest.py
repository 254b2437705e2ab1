import pytest
from copy import deepcopy
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from kittysplit.main import app
from kittysplit.api.deps import get_kitty_service
from kittysplit.core.auth import CurrentUser, create_access_token
from kittysplit.models.kitty import Kitty, Member, Expense, SettlementRecord
from kittysplit.services.kitty_service import KittyService


class InMemoryKittyRepository:
    """Dict-backed stand-in for KittyRepository with the same contract."""

    def __init__(self):
        self.kitties: Dict[str, Kitty] = {}
        self.fail_writes = False

    def _load(self, kitty_id) -> Optional[Kitty]:
        kitty = self.kitties.get(str(kitty_id))
        if kitty is None or kitty.is_deleted:
            return None
        return kitty

    def _bump(self, kitty: Kitty) -> Kitty:
        kitty.version += 1
        return self._store(kitty)

    def _store(self, kitty: Kitty) -> Kitty:
        self.kitties[str(kitty.id)] = kitty
        return deepcopy(kitty)

    async def create_kitty(self, owner, name, description, currency):
        owner.is_owner = True
        kitty = Kitty(
            name=name,
            description=description,
            currency=currency,
            created_by=owner.user_id or owner.member_id,
            members=[owner]
        )
        return self._store(kitty)

    async def get_kitty(self, kitty_id):
        kitty = self._load(kitty_id)
        return deepcopy(kitty) if kitty else None

    async def list_kitties(self, user_id, email=None):
        return [
            deepcopy(k) for k in self.kitties.values()
            if not k.is_deleted and (
                k.created_by == user_id
                or any(m.user_id == user_id or (email and m.email == email) for m in k.members)
            )
        ]

    async def push_member(self, kitty_id, member):
        kitty = self._load(kitty_id)
        if kitty is None:
            return None
        if member.email and any(m.email == member.email for m in kitty.members):
            return None
        kitty.members.append(member)
        return self._bump(kitty)

    async def pull_member(self, kitty_id, member_id):
        kitty = self._load(kitty_id)
        if kitty is None:
            return None
        kitty.members = [m for m in kitty.members if m.is_owner or m.member_id != member_id]
        return self._bump(kitty)

    async def push_expense(self, kitty_id, expense):
        kitty = self._load(kitty_id)
        if kitty is None:
            return None
        kitty.expenses.append(expense)
        kitty.total_amount += expense.amount
        return self._bump(kitty)

    async def pull_expense(self, kitty_id, expense):
        kitty = self._load(kitty_id)
        if kitty is None:
            return None
        kitty.expenses = [e for e in kitty.expenses if e.id != expense.id]
        kitty.total_amount -= expense.amount
        return self._bump(kitty)

    async def update_versioned(self, kitty_id, expected_version, updates):
        if self.fail_writes:
            from pymongo.errors import AutoReconnect
            raise AutoReconnect("connection lost")
        kitty = self._load(kitty_id)
        if kitty is None or kitty.version != expected_version:
            return None
        data = kitty.model_dump(by_alias=True)
        data.update(updates)
        data["version"] = kitty.version + 1
        return self._store(Kitty(**data))

    async def replace_settlements(self, kitty_id, settlements, expected_version):
        return await self.update_versioned(
            kitty_id, expected_version, {"settlements": [s.model_dump() for s in settlements]}
        )

    async def soft_delete_kitty(self, kitty_id):
        kitty = self._load(kitty_id)
        if kitty is None:
            return False
        kitty.is_deleted = True
        return True


@pytest.fixture
def mock_db():
    """Motor database stand-in; every collection is the same mock."""
    db = MagicMock()
    collection = MagicMock()
    collection.insert_one = AsyncMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.update_one = AsyncMock()
    db.__getitem__.return_value = collection
    return db


@pytest.fixture
def repo():
    return InMemoryKittyRepository()


@pytest.fixture
def service(repo):
    return KittyService(repo)


@pytest.fixture
def alice():
    return CurrentUser(id="user_alice", email="alice@example.com", name="Alice")


@pytest.fixture
def bob():
    return CurrentUser(id="user_bob", email="bob@example.com", name="Bob")


@pytest.fixture
def make_members():
    """Registered members named by the given letters, first one is owner."""
    def _make(*names: str) -> List[Member]:
        return [
            Member(user_id=name.lower(), name=name, is_owner=(i == 0))
            for i, name in enumerate(names)
        ]
    return _make


@pytest.fixture
def make_expense():
    def _make(amount: float, paid_by: str, participants: List[str], **kwargs) -> Expense:
        return Expense(amount=amount, paid_by=paid_by, participants=participants, **kwargs)
    return _make


@pytest.fixture
def make_kitty(make_members):
    def _make(
        names=("A", "B", "C"),
        expenses: Optional[List[Expense]] = None,
        settlements: Optional[List[SettlementRecord]] = None,
        **kwargs
    ) -> Kitty:
        expenses = expenses or []
        return Kitty(
            name=kwargs.pop("name", "Trip"),
            currency=kwargs.pop("currency", "$"),
            created_by=names[0].lower(),
            members=make_members(*names),
            expenses=expenses,
            settlements=settlements or [],
            total_amount=sum(e.amount for e in expenses),
            **kwargs
        )
    return _make


@pytest.fixture
def test_client(repo):
    """API client backed by the in-memory repository."""
    app.dependency_overrides[get_kitty_service] = lambda: KittyService(repo)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user: CurrentUser):
        token = create_access_token(user.id, email=user.email, name=user.name)
        return {"Authorization": f"Bearer {token}"}
    return _headers
