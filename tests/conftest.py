import os

# 測試不碰本機的 roulette.db
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, Settings
from core.settlement_engine import SettlementEngine
from services.asset_service import DatabaseAsset

ADMIN = "admin"
ORACLE = "randomizer"
ASSET = "DUDE"
ENGINE = "roulette-engine"


def make_settings(**overrides):
    values = dict(
        database_url="sqlite://",
        administrator=ADMIN,
        randomness_oracle=ORACLE,
        staking_asset=ASSET,
        engine_account=ENGINE,
        max_bet_per_number=Decimal(0),
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    SettlementEngine.bootstrap(session, make_settings())
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def asset(db):
    return DatabaseAsset(db, ASSET)


def fund(db, account, amount, approve=True):
    """鑄幣給 account，並授權引擎帳戶扣款（commit，避免被後續 rollback 撤銷）"""
    token = DatabaseAsset(db, ASSET)
    token.mint(account, Decimal(amount))
    if approve:
        token.approve(account, ENGINE, Decimal(amount))
    db.commit()


def fund_engine(db, amount):
    DatabaseAsset(db, ASSET).mint(ENGINE, Decimal(amount))
    db.commit()


def spin_to(db, value, nonce):
    """LOCKED 以外的前置狀態都要自己準備好：這裡從 OPEN 一路走到 CLOSED"""
    round_obj = SettlementEngine.request_spin(db, ADMIN, nonce)
    SettlementEngine.deliver_randomness(db, ORACLE, round_obj.random_request_id, value)
    return SettlementEngine.set_spin_result(db, ADMIN)
