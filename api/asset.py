"""
Asset API Endpoints（參考資產帳本）

正式環境的資產是外部服務；這裡讓開發與測試環境可以查餘額、授權與鑄幣
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from database import get_db, transactional
from schemas import ActionResponse, ApproveRequest, MintRequest, BalanceResponse
from api.dependencies import get_caller
from core.exceptions import InvalidAmount, Unauthorized
from core.settlement_engine import SettlementEngine
from services.asset_service import DatabaseAsset

router = APIRouter(prefix="/api/asset", tags=["asset"])
logger = logging.getLogger(__name__)


@transactional
def _approve(db: Session, owner: str, spender: str, amount) -> None:
    config = SettlementEngine.get_config(db)
    if not DatabaseAsset(db, config.staking_asset).approve(owner, spender, amount):
        raise InvalidAmount(f"Allowance cannot be negative, got {amount}")


@transactional
def _mint(db: Session, caller: str, account: str, amount) -> None:
    config = SettlementEngine.get_config(db)
    if caller != config.administrator:
        raise Unauthorized(caller, "mint")
    if not DatabaseAsset(db, config.staking_asset).mint(account, amount):
        raise InvalidAmount(f"Mint amount must be positive, got {amount}")


@router.get("/balances/{account}", response_model=BalanceResponse)
def get_balance(account: str, db: Session = Depends(get_db)):
    config = SettlementEngine.get_config(db)
    return BalanceResponse(
        account=account,
        balance=DatabaseAsset(db, config.staking_asset).balance_of(account)
    )


@router.post("/approve", response_model=ActionResponse)
def approve(
    data: ApproveRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """
    授權 spender（通常是引擎帳戶）從呼叫者扣款

    下注前必須先授權
    """
    _approve(db, caller, data.spender, data.amount)
    return ActionResponse(status="ok")


@router.post("/mint", response_model=ActionResponse)
def mint(
    data: MintRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """鑄幣（管理員），用來替引擎或測試帳戶注資"""
    _mint(db, caller, data.account, data.amount)
    logger.info(f"{caller} minted {data.amount} to {data.account}")
    return ActionResponse(status="ok")
