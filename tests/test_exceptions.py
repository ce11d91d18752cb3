from decimal import Decimal

import pytest

from core.exceptions import (
    RouletteException,
    Unauthorized,
    RoundNotOpen,
    RoundNotFound,
    InvalidNumber,
    MaxBetExceeded,
    CannotPayoutWinnings,
    InsufficientPayoutFunds,
    NoWinnings,
    NoSpinResult,
    TransferFailed,
)


def test_default_message_comes_from_docstring():
    exc = RoundNotOpen()
    assert str(exc) == "Round is not open"
    assert exc.code == "ROUND_NOT_OPEN"
    assert exc.status_code == 409


def test_unauthorized():
    exc = Unauthorized("mallory", "open round")
    assert exc.caller == "mallory"
    assert exc.status_code == 403
    assert "mallory" in str(exc)


def test_economic_errors_carry_amounts():
    exc = MaxBetExceeded(24, Decimal("501"), Decimal("500"))
    assert exc.total == Decimal("501")
    assert str(exc).startswith("Bet > maxBet")

    exc = CannotPayoutWinnings(24, Decimal("36000"), Decimal("21000"))
    assert str(exc).startswith("Cannot payout winnings")

    exc = InsufficientPayoutFunds(Decimal("3600"), Decimal("100"))
    assert exc.payout == Decimal("3600")


def test_codes_are_distinct():
    classes = [
        Unauthorized, RoundNotOpen, RoundNotFound, InvalidNumber, MaxBetExceeded,
        CannotPayoutWinnings, InsufficientPayoutFunds, NoWinnings, NoSpinResult, TransferFailed,
    ]
    codes = [cls.code for cls in classes]
    assert len(codes) == len(set(codes))


def test_all_are_roulette_exceptions():
    with pytest.raises(RouletteException):
        raise NoWinnings()
    with pytest.raises(RouletteException):
        raise InvalidNumber(37)
