"""
ORM Models

資料表：
- rounds：回合（只追加，不刪除）
- stakes：(round_id, bettor, number) 的累計下注
- claims：(round_id, bettor) 是否已領獎
- engine_config：單列設定（管理員、最大下注、資產、預言機、亂數緩衝）
- event_logs：對外事件紀錄
- asset_balances / asset_allowances：參考實作的資產帳本
- random_requests / randomizer_accounts：參考實作的亂數預言機
"""
import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    JSON,
    Enum,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator

from database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Amount(TypeDecorator):
    """
    以字串儲存 Decimal，避免 SQLite 把 Numeric 轉成 float 而失去精度

    小數下注（例如 5/3 取 18 位）和其 36 倍獎金都必須精確
    """
    impl = String(120)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class RoundStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    CLOSED = "CLOSED"


class Round(Base):
    __tablename__ = "rounds"

    # 由 RoundLedger 指定（前一回合 id + 1），不使用 autoincrement
    id = Column(Integer, primary_key=True, autoincrement=False)
    status = Column(Enum(RoundStatus), nullable=False, default=RoundStatus.NOT_STARTED)
    winning_number = Column(Integer, nullable=True)
    random_request_id = Column(String(80), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)


class Stake(Base):
    __tablename__ = "stakes"
    __table_args__ = (
        UniqueConstraint("round_id", "bettor", "number", name="uq_stake_round_bettor_number"),
    )

    id = Column(Integer, primary_key=True)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=False, index=True)
    bettor = Column(String(120), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    amount = Column(Amount, nullable=False, default=Decimal(0))


class Claim(Base):
    __tablename__ = "claims"
    __table_args__ = (
        UniqueConstraint("round_id", "bettor", name="uq_claim_round_bettor"),
    )

    id = Column(Integer, primary_key=True)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=False, index=True)
    bettor = Column(String(120), nullable=False)
    payout = Column(Amount, nullable=False)
    claimed_by = Column(String(120), nullable=False)
    claimed_at = Column(DateTime(timezone=True), default=utcnow)


class EngineConfig(Base):
    __tablename__ = "engine_config"

    id = Column(Integer, primary_key=True)
    administrator = Column(String(120), nullable=False)
    max_bet_per_number = Column(Amount, nullable=False, default=Decimal(0))
    staking_asset = Column(String(120), nullable=False)
    randomness_oracle = Column(String(120), nullable=False)
    engine_account = Column(String(120), nullable=False)

    # 亂數緩衝：256-bit 整數以十進位字串保存，被 set_spin_result 消耗後清空
    random_value = Column(String(80), nullable=True)
    random_value_request_id = Column(String(80), nullable=True)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True)
    round_id = Column(Integer, nullable=True, index=True)
    event_type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class AssetBalance(Base):
    __tablename__ = "asset_balances"
    __table_args__ = (
        UniqueConstraint("asset_id", "account", name="uq_balance_asset_account"),
    )

    id = Column(Integer, primary_key=True)
    asset_id = Column(String(120), nullable=False, index=True)
    account = Column(String(120), nullable=False)
    amount = Column(Amount, nullable=False, default=Decimal(0))


class AssetAllowance(Base):
    __tablename__ = "asset_allowances"
    __table_args__ = (
        UniqueConstraint("asset_id", "owner", "spender", name="uq_allowance_asset_owner_spender"),
    )

    id = Column(Integer, primary_key=True)
    asset_id = Column(String(120), nullable=False, index=True)
    owner = Column(String(120), nullable=False)
    spender = Column(String(120), nullable=False)
    amount = Column(Amount, nullable=False, default=Decimal(0))


class RandomRequest(Base):
    __tablename__ = "random_requests"
    __table_args__ = (
        UniqueConstraint("oracle_id", "client", "nonce", name="uq_random_request_nonce"),
    )

    id = Column(Integer, primary_key=True)
    oracle_id = Column(String(120), nullable=False)
    client = Column(String(120), nullable=False)
    nonce = Column(String(80), nullable=False)
    fulfilled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class RandomizerAccount(Base):
    __tablename__ = "randomizer_accounts"
    __table_args__ = (
        UniqueConstraint("oracle_id", "client", name="uq_randomizer_account"),
    )

    id = Column(Integer, primary_key=True)
    oracle_id = Column(String(120), nullable=False)
    client = Column(String(120), nullable=False)
    balance = Column(Amount, nullable=False, default=Decimal(0))
