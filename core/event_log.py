"""
Event Log：記錄所有對外可觀察的事件

事件寫入 event_logs（與業務操作同一個 transaction，失敗時一起 rollback），
同時輸出到 logger，方便外部分析工具或 log 收集器使用。
"""
import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from models import EventLog

logger = logging.getLogger(__name__)

ROUND_CREATED = "ROUND_CREATED"
ROUND_OPENED = "ROUND_OPENED"
BET_PLACED = "BET_PLACED"
SPIN_REQUESTED = "SPIN_REQUESTED"
RANDOMNESS_DELIVERED = "RANDOMNESS_DELIVERED"
SPIN_RESOLVED = "SPIN_RESOLVED"
WINNINGS_COLLECTED = "WINNINGS_COLLECTED"
CONFIG_UPDATED = "CONFIG_UPDATED"
FUNDS_WITHDRAWN = "FUNDS_WITHDRAWN"
RANDOMIZER_DEPOSIT = "RANDOMIZER_DEPOSIT"
RANDOMIZER_WITHDRAWAL = "RANDOMIZER_WITHDRAWAL"


def _jsonable(value: Any) -> Any:
    # Decimal 與 256-bit 整數都轉成字串，避免 JSON 失去精度
    if isinstance(value, bool):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, int) and abs(value) >= 2 ** 53:
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def record_event(db: Session, event_type: str, round_id: Optional[int] = None, **data) -> EventLog:
    """
    新增一筆事件（不 commit，交由外層 transaction 處理）

    範例：
        record_event(db, BET_PLACED, round_id=3,
                     bettor="alice", number=24, amount=Decimal("10"), tag="Red")
    """
    payload = _jsonable(data)
    event = EventLog(round_id=round_id, event_type=event_type, data=payload)
    db.add(event)
    logger.info("event=%s round=%s data=%s", event_type, round_id, payload)
    return event


def get_round_events(db: Session, round_id: int) -> list[EventLog]:
    return db.query(EventLog).filter(
        EventLog.round_id == round_id
    ).order_by(EventLog.id).all()
