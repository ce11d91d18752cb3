"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
SQLite 會忽略 FOR UPDATE，整個資料庫本來就是單一寫入者
"""
from sqlalchemy.orm import Session, Query

from models import Round, EngineConfig, Stake


def with_config_lock(db: Session) -> Query:
    """
    鎖定引擎設定列（單一寫入者）

    使用場景：
    - 所有會修改設定或亂數緩衝的操作
    - 需要在整個 transaction 內讀到一致的 max_bet / 管理員 / 資產

    範例：
        config = with_config_lock(db).first()
        if caller != config.administrator:
            raise Unauthorized(caller, "set max bet")
        config.max_bet_per_number = new_max_bet
        db.commit()
    """
    return db.query(EngineConfig).filter(
        EngineConfig.id == 1
    ).with_for_update(nowait=False)


def with_current_round_lock(db: Session) -> Query:
    """
    鎖定目前回合（id 最大的那一個）

    使用場景：
    - 狀態轉換（open / lock / close / next）
    - 下注時確保回合在整個 transaction 期間保持 OPEN

    返回：
        Query object（需要呼叫 .first() 來取得結果）
    """
    return db.query(Round).order_by(
        Round.id.desc()
    ).limit(1).with_for_update(nowait=False)


def with_round_lock(round_id: int, db: Session) -> Query:
    """
    鎖定一個 Round（行級鎖）

    使用場景：
    - 領獎時防止同一個 (round, bettor) 被重複支付
    """
    return db.query(Round).filter(
        Round.id == round_id
    ).with_for_update(nowait=False)


def lock_stakes_on_number(round_id: int, number: int, db: Session) -> Query:
    """
    鎖定某回合某號碼上所有玩家的下注

    使用場景：
    - 下注時計算該號碼的總曝險（所有玩家加總）

    返回：
        Query object（呼叫 .all() 取得所有結果）
    """
    return db.query(Stake).filter(
        Stake.round_id == round_id,
        Stake.number == number
    ).with_for_update(nowait=False)
