"""
Bet API Endpoints

職責：
1. 下注（批次，all-or-nothing）
2. 查詢下注與歷史
3. 領取獎金（任何人都可以替 bettor 領）
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    PlaceBetRequest,
    PlaceBetResponse,
    PlacedBet,
    StakeResponse,
    BettorStakesResponse,
    CollectWinningsRequest,
    CollectWinningsResponse,
    HistoryEntry,
)
from api.dependencies import get_caller
from core.settlement_engine import SettlementEngine
from core.round_ledger import RoundLedger
from services.history_service import get_bettor_round_history

router = APIRouter(prefix="/api", tags=["bets"])
logger = logging.getLogger(__name__)


@router.post("/bets", response_model=PlaceBetResponse)
def place_bet(
    bet_data: PlaceBetRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """
    在目前回合下注

    前置條件：
    - 回合狀態必須是 OPEN
    - 呼叫者已經 approve 引擎帳戶足夠的額度

    流程：
    1. 逐筆收取資產並寫入帳本
    2. 任一筆失敗（號碼、最大下注、曝險、轉帳），整批取消

    返回：
        每一筆下注後的累計金額
    """
    logger.info(f"Bet from {caller}: {len(bet_data.entries)} entries (tag={bet_data.tag!r})")

    placed = SettlementEngine.place_bet(
        db,
        caller,
        [(entry.number, entry.amount) for entry in bet_data.entries],
        bet_data.tag
    )
    round_obj = SettlementEngine.get_current_round(db)

    return PlaceBetResponse(
        round_id=round_obj.id,
        bets=[PlacedBet(**bet) for bet in placed]
    )


@router.get("/rounds/{round_id}/bets/{bettor}", response_model=BettorStakesResponse)
def get_bettor_stakes(round_id: int, bettor: str, db: Session = Depends(get_db)):
    """取得玩家在某回合所有號碼的累計下注"""
    RoundLedger.get_round(db, round_id)
    return BettorStakesResponse(
        round_id=round_id,
        bettor=bettor,
        stakes=RoundLedger.stakes_of(db, round_id, bettor)
    )


@router.get("/rounds/{round_id}/bets/{bettor}/{number}", response_model=StakeResponse)
def get_stake(round_id: int, bettor: str, number: int, db: Session = Depends(get_db)):
    """
    查詢單一 (round, bettor, number) 的累計下注

    查不到時回傳 0，不是錯誤
    """
    return StakeResponse(
        round_id=round_id,
        bettor=bettor,
        number=number,
        amount=RoundLedger.stake_of(db, round_id, bettor, number)
    )


@router.get("/bettors/{bettor}/history", response_model=list[HistoryEntry])
def get_history(bettor: str, db: Session = Depends(get_db)):
    """玩家的每回合下注、開獎號碼、應得獎金與是否已領"""
    return [HistoryEntry(**entry) for entry in get_bettor_round_history(bettor, db)]


@router.post("/rounds/{round_id}/collect", response_model=CollectWinningsResponse)
def collect_winnings(
    round_id: int,
    collect_data: CollectWinningsRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """
    領取獎金

    前置條件：
    - 回合已 CLOSED
    - bettor 在中獎號碼上有下注且尚未領過

    注意：
        獎金永遠付給 bettor，不是呼叫者
    """
    payout = SettlementEngine.collect_winnings(db, caller, collect_data.bettor, round_id)

    logger.info(f"{caller} collected {payout} for {collect_data.bettor} in round {round_id}")
    return CollectWinningsResponse(round_id=round_id, bettor=collect_data.bettor, payout=payout)
