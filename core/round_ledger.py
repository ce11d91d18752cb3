"""
Round Ledger：回合狀態與下注紀錄的唯一權威來源

職責：
1. 追加回合（round 0 由 bootstrap 建立，其後每次 +1）
2. 目前回合的狀態轉換（透過 RoundStateMachine）
3. (round, bettor, number) 的累計下注

原則：
- 純記帳：不做資產轉帳、不呼叫亂數預言機
- 不 commit：由呼叫者（SettlementEngine）的 transaction 決定成敗
- 只有 SettlementEngine 會呼叫這裡的寫入操作
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from models import Round, RoundStatus, Stake
from core.state_machine import RoundStateMachine
from core.locks import with_current_round_lock, lock_stakes_on_number
from core.exceptions import (
    RoundNotFound,
    RoundNotOpen,
    RoundNotTransitionable,
    InvalidNumber,
    InvalidAmount,
)
from services.payout_service import add_amounts, is_valid_number

logger = logging.getLogger(__name__)


class RoundLedger:
    """回合與下注帳本"""

    @staticmethod
    def get_current_round(db: Session, lock: bool = False) -> Optional[Round]:
        """
        取得目前回合（id 最大、唯一可能不是 CLOSED 的回合）

        參數：
            lock: True 時使用 SELECT ... FOR UPDATE
        """
        if lock:
            return with_current_round_lock(db).first()
        return db.query(Round).order_by(Round.id.desc()).first()

    @staticmethod
    def get_round(db: Session, round_id: int) -> Round:
        """
        異常：
            RoundNotFound: 回合不存在
        """
        round_obj = db.query(Round).filter(Round.id == round_id).first()
        if not round_obj:
            raise RoundNotFound(round_id)
        return round_obj

    @staticmethod
    def create_round(db: Session) -> Round:
        """
        追加新回合（status = NOT_STARTED, id = 前一回合 id + 1）

        沒有任何回合時建立 round 0

        異常：
            RoundNotTransitionable: 前一回合存在但尚未 CLOSED
        """
        previous = RoundLedger.get_current_round(db, lock=True)
        if previous is not None and previous.status != RoundStatus.CLOSED:
            raise RoundNotTransitionable(
                f"Round {previous.id} is {previous.status.value}, cannot create a new round"
            )

        round_id = 0 if previous is None else previous.id + 1
        round_obj = Round(id=round_id, status=RoundStatus.NOT_STARTED)
        db.add(round_obj)
        db.flush()

        logger.info(f"Created round {round_id}")
        return round_obj

    @staticmethod
    def open_current_round(db: Session) -> Round:
        """NOT_STARTED -> OPEN"""
        round_obj = RoundLedger._require_current(db)
        return RoundStateMachine.transition(round_obj, RoundStatus.OPEN)

    @staticmethod
    def lock_current_round(db: Session, request_id: str) -> Round:
        """OPEN -> LOCKED，並記錄亂數請求 id"""
        round_obj = RoundLedger._require_current(db)
        RoundStateMachine.transition(round_obj, RoundStatus.LOCKED)
        round_obj.random_request_id = request_id
        return round_obj

    @staticmethod
    def close_current_round(db: Session, winning_number: int) -> Round:
        """LOCKED -> CLOSED，並記錄中獎號碼"""
        if not is_valid_number(winning_number):
            raise InvalidNumber(winning_number)

        round_obj = RoundLedger._require_current(db)
        RoundStateMachine.transition(round_obj, RoundStatus.CLOSED)
        round_obj.winning_number = winning_number
        round_obj.closed_at = datetime.now(timezone.utc)
        return round_obj

    @staticmethod
    def record_stake(db: Session, round_id: int, bettor: str, number: int, amount: Decimal) -> Decimal:
        """
        累加下注金額

        流程：
        1. 驗證回合存在且為 OPEN
        2. 驗證號碼與金額
        3. 找到或建立 Stake，加上 amount

        返回：
            該 (round, bettor, number) 的新累計金額

        異常：
            RoundNotFound / RoundNotOpen / InvalidNumber / InvalidAmount
        """
        round_obj = RoundLedger.get_round(db, round_id)
        if round_obj.status != RoundStatus.OPEN:
            raise RoundNotOpen()

        if not is_valid_number(number):
            raise InvalidNumber(number)

        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmount(f"Bet amount must be positive, got {amount}")

        stake = db.query(Stake).filter(
            Stake.round_id == round_id,
            Stake.bettor == bettor,
            Stake.number == number
        ).first()

        if stake is None:
            stake = Stake(round_id=round_id, bettor=bettor, number=number, amount=Decimal(0))
            db.add(stake)

        stake.amount = add_amounts(stake.amount, amount)
        db.flush()
        return stake.amount

    @staticmethod
    def stake_of(db: Session, round_id: int, bettor: str, number: int) -> Decimal:
        """唯讀查詢，查不到時回傳 0（不拋出異常）"""
        stake = db.query(Stake).filter(
            Stake.round_id == round_id,
            Stake.bettor == bettor,
            Stake.number == number
        ).first()
        return stake.amount if stake else Decimal(0)

    @staticmethod
    def stakes_of(db: Session, round_id: int, bettor: str) -> dict[int, Decimal]:
        """玩家在某回合所有號碼的下注 {number: amount}"""
        stakes = db.query(Stake).filter(
            Stake.round_id == round_id,
            Stake.bettor == bettor
        ).order_by(Stake.number).all()
        return {stake.number: stake.amount for stake in stakes}

    @staticmethod
    def total_stake_on_number(db: Session, round_id: int, number: int) -> Decimal:
        """某回合某號碼上所有玩家的下注總和"""
        stakes = lock_stakes_on_number(round_id, number, db).all()
        return add_amounts(*(stake.amount for stake in stakes))

    @staticmethod
    def _require_current(db: Session) -> Round:
        round_obj = RoundLedger.get_current_round(db, lock=True)
        if round_obj is None:
            raise RoundNotFound("current")
        return round_obj
