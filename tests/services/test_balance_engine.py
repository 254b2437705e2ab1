import random

import pytest

from kittysplit.models.kitty import Expense, Member
from kittysplit.services.balance_engine import compute_balances


def _nets(ledger):
    return {e.identity: e.net for e in ledger}


def _random_case(seed):
    rng = random.Random(seed)
    members = [Member(user_id=f"u{i}", name=f"M{i}") for i in range(rng.randint(2, 7))]
    keys = [m.user_id for m in members]
    expenses = [
        Expense(
            amount=round(rng.uniform(0.5, 500), 2),
            paid_by=rng.choice(keys),
            participants=rng.sample(keys, rng.randint(1, len(keys)))
        )
        for _ in range(rng.randint(1, 12))
    ]
    return members, expenses


def test_equal_three_way_split(make_members, make_expense):
    # A paid 300 for A, B and C
    members = make_members("A", "B", "C")
    expenses = [make_expense(300, "a", ["a", "b", "c"])]

    ledger = compute_balances(members, expenses)

    nets = _nets(ledger)
    assert nets == {"a": -200, "b": 100, "c": 100}
    assert ledger[0].paid == 300
    assert ledger[0].owed == 100


def test_payer_share_cancels(make_members, make_expense):
    members = make_members("A", "B")
    expenses = [make_expense(50, "a", ["a", "b"]), make_expense(50, "b", ["a", "b"])]

    ledger = compute_balances(members, expenses)

    assert all(e.net == 0 for e in ledger)


def test_removed_participant_share_is_absorbed(make_members, make_expense):
    # Originally split over A, B, C, D; D has since left the kitty
    members = make_members("A", "B", "C")
    expenses = [make_expense(400, "a", ["a", "b", "c", "d"])]

    ledger = compute_balances(members, expenses)

    owed = {e.identity: e.owed for e in ledger}
    assert owed == {"a": 100, "b": 100, "c": 100}
    # D's 100 is not redistributed
    assert sum(e.net for e in ledger) == pytest.approx(-100)


def test_removed_payer_is_skipped(make_members, make_expense):
    members = make_members("A", "B")
    expenses = [make_expense(90, "gone", ["a", "b"])]

    ledger = compute_balances(members, expenses)

    assert [e.paid for e in ledger] == [0, 0]
    assert _nets(ledger) == {"a": 45, "b": 45}


def test_payer_need_not_participate(make_members, make_expense):
    members = make_members("A", "B", "C")
    expenses = [make_expense(60, "a", ["b", "c"])]

    nets = _nets(compute_balances(members, expenses))

    assert nets == {"a": -60, "b": 30, "c": 30}


def test_duplicate_participants_count_once(make_members, make_expense):
    members = make_members("A", "B")
    expenses = [make_expense(10, "a", ["b", "b", "a"])]

    nets = _nets(compute_balances(members, expenses))

    assert nets == {"a": -5, "b": 5}


@pytest.mark.parametrize("amount,participants", [
    (0, ["a", "b"]),
    (-20, ["a", "b"]),
    (20, []),
])
def test_malformed_expense_contributes_nothing(make_members, make_expense, amount, participants):
    members = make_members("A", "B")
    expenses = [make_expense(amount, "a", participants)]

    ledger = compute_balances(members, expenses)

    assert all(e.paid == 0 and e.owed == 0 for e in ledger)


def test_entries_follow_member_order(make_members):
    members = make_members("C", "A", "B")

    ledger = compute_balances(members, [])

    assert [e.identity for e in ledger] == ["c", "a", "b"]
    assert [e.name for e in ledger] == ["C", "A", "B"]


def test_invitee_matched_by_email(make_expense):
    members = [
        Member(user_id="a", name="A", is_owner=True),
        Member(email="guest@example.com", name="Guest"),
    ]
    expenses = [make_expense(30, "guest@example.com", ["a", "guest@example.com"])]

    nets = _nets(compute_balances(members, expenses))

    assert nets == {"a": 15, "guest@example.com": -15}


@pytest.mark.parametrize("seed", range(25))
def test_balances_are_conserved(seed):
    members, expenses = _random_case(seed)

    ledger = compute_balances(members, expenses)

    assert abs(sum(e.net for e in ledger)) < 1e-6


@pytest.mark.parametrize("seed", range(5))
def test_result_is_order_independent(seed):
    members, expenses = _random_case(seed)

    forward = compute_balances(members, expenses)
    backward = compute_balances(members, list(reversed(expenses)))

    for a, b in zip(forward, backward):
        assert a.identity == b.identity
        assert a.net == pytest.approx(b.net, abs=1e-9)


def test_inputs_are_not_mutated(make_members, make_expense):
    members = make_members("A", "B")
    expenses = [make_expense(10, "a", ["a", "b"])]
    before = [e.model_dump() for e in expenses]

    compute_balances(members, expenses)

    assert [e.model_dump() for e in expenses] == before
