from decimal import Decimal

import pytest

from models import RoundStatus
from core.round_ledger import RoundLedger
from core.exceptions import (
    InvalidAmount,
    InvalidNumber,
    RoundNotFound,
    RoundNotOpen,
    RoundNotTransitionable,
)


def test_bootstrap_creates_round_zero(db):
    round_obj = RoundLedger.get_current_round(db)
    assert round_obj.id == 0
    assert round_obj.status == RoundStatus.NOT_STARTED
    assert round_obj.random_request_id is None


def test_lifecycle_records_request_and_winning_number(db):
    RoundLedger.open_current_round(db)
    RoundLedger.lock_current_round(db, "42")
    round_obj = RoundLedger.close_current_round(db, 17)

    assert round_obj.status == RoundStatus.CLOSED
    assert round_obj.random_request_id == "42"
    assert round_obj.winning_number == 17


def test_create_round_requires_previous_closed(db):
    with pytest.raises(RoundNotTransitionable):
        RoundLedger.create_round(db)

    RoundLedger.open_current_round(db)
    RoundLedger.lock_current_round(db, "1")
    RoundLedger.close_current_round(db, 0)

    round_obj = RoundLedger.create_round(db)
    assert round_obj.id == 1
    assert round_obj.status == RoundStatus.NOT_STARTED
    # 舊回合保留
    assert RoundLedger.get_round(db, 0).status == RoundStatus.CLOSED


def test_transitions_out_of_order_fail(db):
    with pytest.raises(RoundNotTransitionable):
        RoundLedger.lock_current_round(db, "1")
    with pytest.raises(RoundNotTransitionable):
        RoundLedger.close_current_round(db, 5)

    RoundLedger.open_current_round(db)
    with pytest.raises(RoundNotTransitionable):
        RoundLedger.open_current_round(db)
    assert RoundLedger.get_current_round(db).status == RoundStatus.OPEN


def test_record_stake_accumulates(db):
    RoundLedger.open_current_round(db)

    assert RoundLedger.record_stake(db, 0, "alice", 24, Decimal("400")) == Decimal("400")
    assert RoundLedger.record_stake(db, 0, "alice", 24, Decimal("101")) == Decimal("501")
    assert RoundLedger.record_stake(db, 0, "bob", 24, Decimal("5")) == Decimal("5")

    assert RoundLedger.stake_of(db, 0, "alice", 24) == Decimal("501")
    assert RoundLedger.total_stake_on_number(db, 0, 24) == Decimal("506")
    assert RoundLedger.stakes_of(db, 0, "alice") == {24: Decimal("501")}


def test_stake_of_unknown_key_is_zero(db):
    assert RoundLedger.stake_of(db, 0, "nobody", 3) == 0
    assert RoundLedger.stake_of(db, 99, "nobody", 3) == 0


def test_record_stake_requires_open_round(db):
    with pytest.raises(RoundNotOpen):
        RoundLedger.record_stake(db, 0, "alice", 1, Decimal("1"))

    RoundLedger.open_current_round(db)
    RoundLedger.record_stake(db, 0, "alice", 1, Decimal("1"))
    RoundLedger.lock_current_round(db, "9")

    # LOCKED 之後下注凍結
    with pytest.raises(RoundNotOpen):
        RoundLedger.record_stake(db, 0, "alice", 1, Decimal("1"))
    assert RoundLedger.stake_of(db, 0, "alice", 1) == Decimal("1")


def test_record_stake_validation(db):
    RoundLedger.open_current_round(db)

    with pytest.raises(InvalidNumber):
        RoundLedger.record_stake(db, 0, "alice", 37, Decimal("1"))
    with pytest.raises(InvalidNumber):
        RoundLedger.record_stake(db, 0, "alice", -1, Decimal("1"))
    with pytest.raises(InvalidAmount):
        RoundLedger.record_stake(db, 0, "alice", 3, Decimal("0"))
    with pytest.raises(RoundNotFound):
        RoundLedger.record_stake(db, 5, "alice", 3, Decimal("1"))


def test_get_round_unknown(db):
    with pytest.raises(RoundNotFound):
        RoundLedger.get_round(db, 12)
