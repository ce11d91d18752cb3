"""
Oracle API Endpoints

亂數預言機的 callback：預言機受理 request_spin 之後，非同步把亂數推送到這裡

只接受設定中的預言機身分，而且 request_id 必須是目前鎖定回合在等待的請求
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ActionResponse, RandomnessDelivery
from api.dependencies import get_caller
from core.settlement_engine import SettlementEngine

router = APIRouter(prefix="/api/oracle", tags=["oracle"])
logger = logging.getLogger(__name__)


@router.post("/callback", response_model=ActionResponse)
def deliver_randomness(
    delivery: RandomnessDelivery,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db)
):
    """
    接收亂數

    異常：
        Unauthorized (403): 呼叫者不是預言機
        UnknownRandomRequest (409): request_id 不是目前在等待的請求
        RandomnessAlreadyDelivered (409): 重送
    """
    round_obj = SettlementEngine.deliver_randomness(db, caller, delivery.request_id, delivery.value)

    logger.info(f"Randomness for request {delivery.request_id} stored (round {round_obj.id})")
    return ActionResponse(status="ok")
