"""
Round API Endpoints（唯讀）

重點：
1. 所有狀態轉換都在 /api/admin，這裡只提供查詢
2. 歷史回合永久保留，任何 round_id 都可以查
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import logging

from database import get_db
from schemas import RoundResponse, EventResponse
from core.settlement_engine import SettlementEngine
from core.round_ledger import RoundLedger
from core.event_log import get_round_events

router = APIRouter(prefix="/api/rounds", tags=["rounds"])
logger = logging.getLogger(__name__)


@router.get("/current", response_model=RoundResponse)
def get_current_round(db: Session = Depends(get_db)):
    """
    取得目前回合

    返回：
        - round_id: 回合編號
        - status: NOT_STARTED / OPEN / LOCKED / CLOSED
        - winning_number: 只有 CLOSED 時才有值
    """
    return RoundResponse.from_round(SettlementEngine.get_current_round(db))


@router.get("/{round_id}", response_model=RoundResponse)
def get_round(round_id: int, db: Session = Depends(get_db)):
    """取得指定回合（RoundNotFound -> 404）"""
    return RoundResponse.from_round(RoundLedger.get_round(db, round_id))


@router.get("/{round_id}/events", response_model=list[EventResponse])
def get_events(round_id: int, db: Session = Depends(get_db)):
    """
    取得回合的事件紀錄（開局、下注、請求亂數、開獎、領獎）

    下注事件的 tag 只出現在這裡
    """
    RoundLedger.get_round(db, round_id)
    return [
        EventResponse(
            event_type=event.event_type,
            round_id=event.round_id,
            data=event.data,
            created_at=event.created_at,
        )
        for event in get_round_events(db, round_id)
    ]
