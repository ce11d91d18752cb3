"""
Pydantic schemas：API 的請求 / 回應格式

號碼範圍與金額不在這裡驗證，交給 SettlementEngine 回傳穩定的錯誤代碼
（InvalidNumber / InvalidAmount），避免同一種錯誤有兩種回應格式
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models import RoundStatus


class ActionResponse(BaseModel):
    status: str


class ErrorResponse(BaseModel):
    error: str
    detail: str


# ============ Round ============

class RoundResponse(BaseModel):
    round_id: int
    status: RoundStatus
    winning_number: Optional[int] = None
    random_request_id: Optional[str] = None

    @classmethod
    def from_round(cls, round_obj) -> "RoundResponse":
        return cls(
            round_id=round_obj.id,
            status=round_obj.status,
            winning_number=round_obj.winning_number if round_obj.status == RoundStatus.CLOSED else None,
            random_request_id=round_obj.random_request_id,
        )


class EventResponse(BaseModel):
    event_type: str
    round_id: Optional[int] = None
    data: Dict[str, Any]
    created_at: Optional[datetime] = None


# ============ Bet ============

class BetEntry(BaseModel):
    number: int
    amount: Decimal


class PlaceBetRequest(BaseModel):
    entries: List[BetEntry]
    tag: str = ""


class PlacedBet(BaseModel):
    number: int
    amount: Decimal
    total: Decimal


class PlaceBetResponse(BaseModel):
    round_id: int
    bets: List[PlacedBet]


class StakeResponse(BaseModel):
    round_id: int
    bettor: str
    number: int
    amount: Decimal


class BettorStakesResponse(BaseModel):
    round_id: int
    bettor: str
    stakes: Dict[int, Decimal]


class CollectWinningsRequest(BaseModel):
    bettor: str = Field(..., min_length=1)


class CollectWinningsResponse(BaseModel):
    round_id: int
    bettor: str
    payout: Decimal


class HistoryEntry(BaseModel):
    round_id: int
    status: RoundStatus
    winning_number: Optional[int] = None
    stakes: Dict[int, Decimal]
    total_staked: Decimal
    payout: Optional[Decimal] = None
    claimed: bool


# ============ Spin / Oracle ============

class SpinRequest(BaseModel):
    nonce: int = Field(..., ge=0)


class RandomnessDelivery(BaseModel):
    request_id: str
    value: int


# ============ Admin ============

class ConfigResponse(BaseModel):
    administrator: str
    max_bet_per_number: Decimal
    staking_asset: str
    randomness_oracle: str
    engine_account: str
    engine_balance: Decimal
    randomness_pending: bool


class SetMaxBetRequest(BaseModel):
    max_bet: Decimal


class SetAddressRequest(BaseModel):
    address: str = Field(..., min_length=1)


class FundsRequest(BaseModel):
    to: str = Field(..., min_length=1)
    amount: Decimal


class DepositRequest(BaseModel):
    amount: Decimal


class BalanceResponse(BaseModel):
    account: str
    balance: Decimal


# ============ Asset ============

class ApproveRequest(BaseModel):
    spender: str = Field(..., min_length=1)
    amount: Decimal


class MintRequest(BaseModel):
    account: str = Field(..., min_length=1)
    amount: Decimal
