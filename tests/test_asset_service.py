from decimal import Decimal

from services.asset_service import DatabaseAsset


def test_unknown_account_has_zero_balance(asset):
    assert asset.balance_of("ghost") == 0
    assert asset.allowance("ghost", "engine") == 0


def test_mint_and_transfer(asset):
    assert asset.mint("alice", Decimal("100"))
    assert asset.transfer("alice", "bob", Decimal("40"))

    assert asset.balance_of("alice") == Decimal("60")
    assert asset.balance_of("bob") == Decimal("40")


def test_transfer_refused_without_balance(asset):
    asset.mint("alice", Decimal("10"))

    assert not asset.transfer("alice", "bob", Decimal("11"))
    assert not asset.transfer("alice", "bob", Decimal("0"))
    assert asset.balance_of("alice") == Decimal("10")
    assert asset.balance_of("bob") == 0


def test_transfer_from_consumes_allowance(asset):
    asset.mint("alice", Decimal("100"))
    asset.approve("alice", "engine", Decimal("30"))

    assert asset.transfer_from("alice", "engine", Decimal("20"))
    assert asset.allowance("alice", "engine") == Decimal("10")
    assert not asset.transfer_from("alice", "engine", Decimal("20"))
    assert asset.balance_of("engine") == Decimal("20")


def test_transfer_from_needs_balance_too(asset):
    asset.mint("alice", Decimal("5"))
    asset.approve("alice", "engine", Decimal("50"))

    assert not asset.transfer_from("alice", "engine", Decimal("6"))
    assert asset.allowance("alice", "engine") == Decimal("50")


def test_assets_are_separate_ledgers(db, asset):
    other = DatabaseAsset(db, "OTHER")
    asset.mint("alice", Decimal("7"))

    assert other.balance_of("alice") == 0


def test_fractional_amounts_are_exact(db, asset):
    asset.mint("alice", Decimal("1.000000000000000001"))
    db.commit()

    assert asset.balance_of("alice") == Decimal("1.000000000000000001")
