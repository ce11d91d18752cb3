"""
Admin API Endpoints（管理員）

回合生命週期：
    POST /open -> POST /spin -> (預言機 callback) -> POST /result -> POST /next

除了 /randomizer/deposit 以外，全部只有管理員可以呼叫（Unauthorized -> 403）
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import logging

from database import get_db
from models import RoundStatus
from schemas import (
    ActionResponse,
    RoundResponse,
    SpinRequest,
    ConfigResponse,
    SetMaxBetRequest,
    SetAddressRequest,
    FundsRequest,
    DepositRequest,
    BalanceResponse,
)
from api.dependencies import get_caller
from core.settlement_engine import SettlementEngine

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


def _config_response(db: Session) -> ConfigResponse:
    config = SettlementEngine.get_config(db)
    return ConfigResponse(
        administrator=config.administrator,
        max_bet_per_number=config.max_bet_per_number,
        staking_asset=config.staking_asset,
        randomness_oracle=config.randomness_oracle,
        engine_account=config.engine_account,
        engine_balance=SettlementEngine.engine_balance(db),
        randomness_pending=config.random_value is not None,
    )


# ============ 回合生命週期 ============

@router.post("/rounds/open", response_model=RoundResponse)
def open_round(caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    """
    開放下注（NOT_STARTED -> OPEN）

    異常：
        RoundNotOpenable: 目前回合不是 NOT_STARTED
    """
    round_obj = SettlementEngine.open_round(db, caller)
    return RoundResponse.from_round(round_obj)


@router.post("/rounds/spin", response_model=RoundResponse)
def request_spin(
    spin_data: SpinRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """
    停止下注並請求亂數（OPEN -> LOCKED）

    之後回合會停在 LOCKED，直到預言機 callback 送達並呼叫 /rounds/result
    """
    round_obj = SettlementEngine.request_spin(db, caller, spin_data.nonce)
    return RoundResponse.from_round(round_obj)


@router.post("/rounds/result", response_model=RoundResponse)
def set_spin_result(caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    """
    開獎（LOCKED -> CLOSED）

    異常：
        NoSpinResult: 預言機還沒送回亂數（回合維持 LOCKED）
    """
    round_obj = SettlementEngine.set_spin_result(db, caller)
    return RoundResponse.from_round(round_obj)


@router.post("/rounds/next", response_model=RoundResponse)
def next_round(caller: str = Depends(get_caller), db: Session = Depends(get_db)):
    """建立下一回合（目前回合必須 CLOSED）"""
    round_obj = SettlementEngine.next_round(db, caller)
    return RoundResponse.from_round(round_obj)


# ============ 設定 ============

@router.get("/config", response_model=ConfigResponse)
def get_config(db: Session = Depends(get_db)):
    return _config_response(db)


@router.post("/config/max-bet", response_model=ConfigResponse)
def set_max_bet(
    data: SetMaxBetRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    SettlementEngine.set_max_bet(db, caller, data.max_bet)
    return _config_response(db)


@router.post("/config/betting-token", response_model=ConfigResponse)
def set_betting_token(
    data: SetAddressRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    SettlementEngine.set_betting_token(db, caller, data.address)
    return _config_response(db)


@router.post("/config/randomizer", response_model=ConfigResponse)
def set_randomizer(
    data: SetAddressRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    SettlementEngine.set_randomizer(db, caller, data.address)
    return _config_response(db)


@router.post("/config/owner", response_model=ConfigResponse)
def transfer_ownership(
    data: SetAddressRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    SettlementEngine.transfer_ownership(db, caller, data.address)
    logger.info(f"Ownership transferred from {caller} to {data.address}")
    return _config_response(db)


# ============ 資金 ============

@router.post("/withdraw", response_model=BalanceResponse)
def withdraw(
    data: FundsRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """從引擎保管的資產提領，回傳引擎剩餘餘額"""
    balance = SettlementEngine.withdraw(db, caller, data.to, data.amount)
    config = SettlementEngine.get_config(db)
    return BalanceResponse(account=config.engine_account, balance=balance)


@router.post("/randomizer/withdraw", response_model=BalanceResponse)
def withdraw_from_randomizer(
    data: FundsRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """從預言機 gas 預付餘額提領，回傳剩餘預付餘額"""
    balance = SettlementEngine.withdraw_from_randomizer(db, caller, data.to, data.amount)
    config = SettlementEngine.get_config(db)
    return BalanceResponse(account=config.engine_account, balance=balance)


@router.post("/randomizer/deposit", response_model=BalanceResponse)
def deposit_to_randomizer(
    data: DepositRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """替引擎加值預言機 gas（任何人都可以）"""
    balance = SettlementEngine.deposit_to_randomizer(db, caller, data.amount)
    config = SettlementEngine.get_config(db)
    return BalanceResponse(account=config.engine_account, balance=balance)


@router.get("/health/oracle", response_model=ActionResponse)
def oracle_status(db: Session = Depends(get_db)):
    """
    回合是否卡在 LOCKED 等待亂數

    預言機停擺時回合會一直停在 LOCKED（沒有逾時機制），這裡方便監控
    """
    round_obj = SettlementEngine.get_current_round(db)
    config = SettlementEngine.get_config(db)
    waiting = round_obj.status == RoundStatus.LOCKED and config.random_value is None
    return ActionResponse(status="waiting_for_randomness" if waiting else "ok")
