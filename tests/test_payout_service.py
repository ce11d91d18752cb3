from decimal import Decimal

import pytest

from services.payout_service import (
    PAYOUT_MULTIPLIER,
    add_amounts,
    calculate_payout,
    can_cover_exposure,
    is_valid_number,
    subtract_amount,
    winning_number_from_random,
    worst_case_exposure,
)


@pytest.mark.parametrize("number", [0, 1, 18, 36])
def test_valid_numbers(number):
    assert is_valid_number(number)


@pytest.mark.parametrize("number", [-1, 37, 100, True, "7", 7.0, None])
def test_invalid_numbers(number):
    assert not is_valid_number(number)


def test_winning_number_is_value_mod_37():
    assert winning_number_from_random(24) == 24
    assert winning_number_from_random(37) == 0
    assert winning_number_from_random(37 * 1000 + 24) == 24


def test_winning_number_accepts_full_256_bit_range():
    value = 2 ** 256 - 1
    assert winning_number_from_random(value) == value % 37
    assert 0 <= winning_number_from_random(value) <= 36


@pytest.mark.parametrize("value", [-1, 2 ** 256])
def test_winning_number_rejects_out_of_range(value):
    with pytest.raises(ValueError):
        winning_number_from_random(value)


def test_payout_is_36_times_stake():
    assert PAYOUT_MULTIPLIER == 36
    assert calculate_payout(Decimal("100")) == Decimal("3600")
    assert calculate_payout(Decimal("0")) == Decimal("0")


def test_payout_exact_for_fractional_stake():
    stake = Decimal("1.666666666666666667")
    assert calculate_payout(stake) == Decimal("60.000000000000000012")


def test_payout_exact_beyond_default_precision():
    stake = Decimal("1000000000.000000000000000001")

    assert calculate_payout(stake) == Decimal("36000000000.000000000000000036")
    assert worst_case_exposure(stake) == calculate_payout(stake)


def test_amount_arithmetic_exact_beyond_default_precision():
    balance = Decimal("123456789012.123456789012345678")

    assert add_amounts(balance, Decimal("0.000000000000000001")) == Decimal("123456789012.123456789012345679")
    assert subtract_amount(balance, Decimal("12.000000000000000008")) == Decimal("123456789000.12345678901234567")
    assert add_amounts() == 0


def test_exposure_against_balance():
    assert worst_case_exposure(Decimal("10")) == Decimal("360")
    assert can_cover_exposure(Decimal("10"), Decimal("360"))
    assert not can_cover_exposure(Decimal("10"), Decimal("359.99"))
