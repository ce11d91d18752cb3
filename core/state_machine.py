"""
狀態機：集中管理 Round 的所有狀態轉換

合法轉換（單向，不可回頭）：
    NOT_STARTED -> OPEN -> LOCKED -> CLOSED

CLOSED 之後不是轉換，而是由 RoundLedger.create_round() 追加新回合

所有狀態變更都必須經過這裡，避免各處自行修改 round.status
"""
import logging

from models import Round, RoundStatus
from core.exceptions import RoundNotTransitionable

logger = logging.getLogger(__name__)


class RoundStateMachine:
    """Round 狀態轉換規則"""

    TRANSITIONS = {
        RoundStatus.NOT_STARTED: RoundStatus.OPEN,
        RoundStatus.OPEN: RoundStatus.LOCKED,
        RoundStatus.LOCKED: RoundStatus.CLOSED,
    }

    @classmethod
    def can_transition(cls, current: RoundStatus, target: RoundStatus) -> bool:
        return cls.TRANSITIONS.get(current) == target

    @classmethod
    def transition(cls, round_obj: Round, target: RoundStatus) -> Round:
        """
        將回合轉換到 target 狀態

        異常：
            RoundNotTransitionable: 目前狀態不能轉換到 target（狀態保持不變）
        """
        current = round_obj.status
        if not cls.can_transition(current, target):
            raise RoundNotTransitionable(
                f"Round {round_obj.id} cannot move from {current.value} to {target.value}"
            )

        round_obj.status = target
        logger.info(f"Round {round_obj.id}: {current.value} -> {target.value}")
        return round_obj
