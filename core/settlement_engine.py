"""
Settlement Engine：輪盤回合的完整生命週期與資金規則

職責：
1. 回合轉換（open -> lock -> resolve -> next），全部由管理員驅動
2. 下注：收取資產、寫入 RoundLedger、檢查最大下注與最壞情況曝險
3. 亂數：向預言機請求、驗證 callback、由亂數決定中獎號碼
4. 領獎：計算 36 倍獎金並支付（每個 (round, bettor) 最多一次）
5. 設定與資金：setter、提領、預言機 gas 預付

原則：
- 每個公開操作都是一個 transaction（@transactional），失敗時所有變更（含轉帳）一起 rollback
- 只有這裡會寫入 RoundLedger
- 事件與狀態變更寫在同一個 transaction
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from database import Settings, transactional
from models import Claim, EngineConfig, Round, RoundStatus
from core import event_log
from core.event_log import record_event
from core.locks import with_config_lock, with_round_lock
from core.round_ledger import RoundLedger
from core.exceptions import (
    CannotPayoutWinnings,
    InsufficientPayoutFunds,
    InvalidAmount,
    InvalidNumber,
    InvalidRandomValue,
    MaxBetExceeded,
    NoSpinResult,
    NoWinnings,
    RandomnessAlreadyDelivered,
    RoundNotClosed,
    RoundNotFound,
    RoundNotLocked,
    RoundNotOpen,
    RoundNotOpenable,
    TransferFailed,
    Unauthorized,
    UnknownRandomRequest,
)
from services.asset_service import DatabaseAsset
from services.randomness_service import DatabaseRandomizer
from services.payout_service import (
    RANDOM_VALUE_BITS,
    calculate_payout,
    can_cover_exposure,
    is_valid_number,
    winning_number_from_random,
    worst_case_exposure,
)

logger = logging.getLogger(__name__)


class SettlementEngine:
    """輪盤引擎（唯一對外的寫入入口）"""

    # ============ 初始化 ============

    @staticmethod
    @transactional
    def bootstrap(db: Session, settings: Settings) -> EngineConfig:
        """
        第一次啟動時建立設定列與 round 0

        已經存在時不做任何修改（資料庫設定優先於環境變數）
        """
        config = db.query(EngineConfig).filter(EngineConfig.id == 1).first()
        if config is None:
            config = EngineConfig(
                id=1,
                administrator=settings.administrator,
                max_bet_per_number=settings.max_bet_per_number,
                staking_asset=settings.staking_asset,
                randomness_oracle=settings.randomness_oracle,
                engine_account=settings.engine_account,
            )
            db.add(config)
            logger.info(
                f"Engine configured: admin={settings.administrator}, "
                f"asset={settings.staking_asset}, oracle={settings.randomness_oracle}"
            )

        if RoundLedger.get_current_round(db) is None:
            round_obj = RoundLedger.create_round(db)
            record_event(db, event_log.ROUND_CREATED, round_id=round_obj.id)

        return config

    # ============ 回合生命週期（管理員） ============

    @staticmethod
    @transactional
    def open_round(db: Session, caller: str) -> Round:
        """
        開放下注（NOT_STARTED -> OPEN）

        異常：
            Unauthorized: 呼叫者不是管理員
            RoundNotOpenable: 目前回合不是 NOT_STARTED
        """
        config = SettlementEngine._load_config(db, lock=True)
        SettlementEngine._require_admin(config, caller, "open round")

        round_obj = RoundLedger.get_current_round(db, lock=True)
        if round_obj.status != RoundStatus.NOT_STARTED:
            raise RoundNotOpenable(
                f"Round {round_obj.id} is {round_obj.status.value}, expected NOT_STARTED"
            )

        RoundLedger.open_current_round(db)
        record_event(db, event_log.ROUND_OPENED, round_id=round_obj.id)
        return round_obj

    @staticmethod
    @transactional
    def request_spin(db: Session, caller: str, nonce) -> Round:
        """
        停止下注並向預言機請求亂數（OPEN -> LOCKED）

        流程：
        1. 驗證管理員與回合狀態
        2. 呼叫預言機 request_random（nonce 由預言機去重）
        3. 鎖定回合並記錄 request id
        4. 清掉任何殘留的亂數緩衝

        異常：
            Unauthorized / RoundNotOpen / OracleRequestFailed
        """
        config = SettlementEngine._load_config(db, lock=True)
        SettlementEngine._require_admin(config, caller, "request spin")

        round_obj = RoundLedger.get_current_round(db, lock=True)
        if round_obj.status != RoundStatus.OPEN:
            raise RoundNotOpen()

        randomizer = DatabaseRandomizer(db, config.randomness_oracle)
        request_id = randomizer.request_random(config.engine_account, nonce)

        RoundLedger.lock_current_round(db, request_id)
        config.random_value = None
        config.random_value_request_id = None

        record_event(
            db, event_log.SPIN_REQUESTED,
            round_id=round_obj.id, request_id=request_id, nonce=str(nonce)
        )
        return round_obj

    @staticmethod
    @transactional
    def deliver_randomness(db: Session, caller: str, request_id: str, value: int) -> Round:
        """
        預言機 callback：保存亂數到緩衝區

        只接受 (預言機身分, 目前鎖定回合的 request id) 這一組，其他一律拒絕

        異常：
            Unauthorized: 呼叫者不是設定中的預言機
            InvalidRandomValue: 亂數超出 256-bit
            UnknownRandomRequest: request id 不是目前在等待的請求，或預言機沒有發出過
            RandomnessAlreadyDelivered: 同一個請求重送
        """
        config = SettlementEngine._load_config(db, lock=True)
        if caller != config.randomness_oracle:
            raise Unauthorized(caller, "deliver randomness")

        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < 2 ** RANDOM_VALUE_BITS:
            raise InvalidRandomValue()

        request_id = str(request_id)
        round_obj = RoundLedger.get_current_round(db, lock=True)
        if round_obj.status != RoundStatus.LOCKED or round_obj.random_request_id != request_id:
            raise UnknownRandomRequest(request_id)

        if config.random_value is not None:
            raise RandomnessAlreadyDelivered(f"Random request {request_id} was already delivered")

        # 預言機必須真的發出過這個請求（例如鎖定後換了預言機就不算）
        randomizer = DatabaseRandomizer(db, config.randomness_oracle)
        if not randomizer.mark_fulfilled(request_id):
            raise UnknownRandomRequest(request_id)

        config.random_value = str(value)
        config.random_value_request_id = request_id

        record_event(db, event_log.RANDOMNESS_DELIVERED, round_id=round_obj.id, request_id=request_id)
        return round_obj

    @staticmethod
    @transactional
    def set_spin_result(db: Session, caller: str) -> Round:
        """
        用緩衝區的亂數決定中獎號碼（LOCKED -> CLOSED）

        winning_number = raw_random_value mod 37

        異常：
            Unauthorized / RoundNotLocked
            NoSpinResult: 還沒收到亂數（回合維持 LOCKED）
        """
        config = SettlementEngine._load_config(db, lock=True)
        SettlementEngine._require_admin(config, caller, "set spin result")

        round_obj = RoundLedger.get_current_round(db, lock=True)
        if round_obj.status != RoundStatus.LOCKED:
            raise RoundNotLocked()

        if config.random_value is None:
            raise NoSpinResult()

        winning_number = winning_number_from_random(int(config.random_value))
        config.random_value = None
        config.random_value_request_id = None

        RoundLedger.close_current_round(db, winning_number)
        record_event(db, event_log.SPIN_RESOLVED, round_id=round_obj.id, winning_number=winning_number)

        logger.info(f"Round {round_obj.id} resolved to {winning_number}")
        return round_obj

    @staticmethod
    @transactional
    def next_round(db: Session, caller: str) -> Round:
        """
        建立下一回合（CLOSED -> 新的 NOT_STARTED 回合）

        異常：
            Unauthorized / RoundNotClosed
        """
        config = SettlementEngine._load_config(db, lock=True)
        SettlementEngine._require_admin(config, caller, "start next round")

        current = RoundLedger.get_current_round(db, lock=True)
        if current.status != RoundStatus.CLOSED:
            raise RoundNotClosed(f"Round {current.id} is {current.status.value}")

        round_obj = RoundLedger.create_round(db)
        record_event(db, event_log.ROUND_CREATED, round_id=round_obj.id)
        return round_obj

    # ============ 玩家操作 ============

    @staticmethod
    @transactional
    def place_bet(
        db: Session,
        caller: str,
        entries: Iterable[Tuple[int, Decimal]],
        tag: str = ""
    ) -> List[dict]:
        """
        批次下注（all-or-nothing）

        流程（每一筆 entry）：
        1. 驗證號碼 0-36
        2. 從呼叫者收取 amount（transfer_from，需要事先授權）
        3. 寫入 RoundLedger，取得新的累計金額
        4. 累計金額不能超過 max_bet_per_number
        5. 該號碼所有玩家的累計下注 * 36 不能超過引擎餘額

        任何一筆失敗，整個 transaction rollback（前面已收取的資產也會退回）

        參數：
            entries: [(number, amount), ...]
            tag: 只寫進 BET_PLACED 事件，不影響任何驗證

        返回：
            [{"number", "amount", "total"}, ...]

        異常：
            RoundNotOpen / InvalidNumber / InvalidAmount / TransferFailed
            MaxBetExceeded / CannotPayoutWinnings
        """
        config = SettlementEngine._load_config(db, lock=True)

        round_obj = RoundLedger.get_current_round(db, lock=True)
        if round_obj.status != RoundStatus.OPEN:
            raise RoundNotOpen()

        entries = list(entries)
        if not entries:
            raise InvalidAmount("Bet must contain at least one entry")

        asset = DatabaseAsset(db, config.staking_asset)
        placed = []

        for number, amount in entries:
            # 1. 驗證號碼與金額（在收取資產之前）
            if not is_valid_number(number):
                raise InvalidNumber(number)
            amount = Decimal(amount)
            if amount <= 0:
                raise InvalidAmount(f"Bet amount must be positive, got {amount}")

            # 2. 收取資產
            if not asset.transfer_from(caller, config.engine_account, amount):
                raise TransferFailed(caller, config.engine_account, amount)

            # 3. 寫入帳本
            total = RoundLedger.record_stake(db, round_obj.id, caller, number, amount)

            # 4. 最大下注
            if total > config.max_bet_per_number:
                raise MaxBetExceeded(number, total, config.max_bet_per_number)

            # 5. 最壞情況曝險（所有玩家共用同一個資金池）
            aggregate = RoundLedger.total_stake_on_number(db, round_obj.id, number)
            balance = asset.balance_of(config.engine_account)
            if not can_cover_exposure(aggregate, balance):
                raise CannotPayoutWinnings(number, worst_case_exposure(aggregate), balance)

            record_event(
                db, event_log.BET_PLACED,
                round_id=round_obj.id, bettor=caller, number=number, amount=amount, tag=tag
            )
            placed.append({"number": number, "amount": amount, "total": total})

        logger.info(f"{caller} placed {len(placed)} bet(s) in round {round_obj.id} (tag={tag!r})")
        return placed

    @staticmethod
    @transactional
    def collect_winnings(db: Session, caller: str, bettor: str, round_id: int) -> Decimal:
        """
        領取獎金（任何人都可以替 bettor 領，獎金一律付給 bettor）

        流程：
        1. 回合必須 CLOSED
        2. 尚未領過，且中獎號碼上有下注（兩者都不成立時都回 NoWinnings）
        3. payout = 中獎號碼累計下注 * 36
        4. 引擎餘額必須足夠（不足時不留下領獎紀錄，補足後可重試）
        5. 寫入領獎紀錄，再轉帳

        異常：
            RoundNotFound / RoundNotClosed / NoWinnings
            InsufficientPayoutFunds / TransferFailed
        """
        config = SettlementEngine._load_config(db, lock=True)

        # 1. 鎖定回合
        round_obj = with_round_lock(round_id, db).first()
        if not round_obj:
            raise RoundNotFound(round_id)
        if round_obj.status != RoundStatus.CLOSED:
            raise RoundNotClosed(f"Round {round_id} is {round_obj.status.value}")

        # 2. 是否有獎金
        already_claimed = db.query(Claim).filter(
            Claim.round_id == round_id,
            Claim.bettor == bettor
        ).first() is not None
        stake = RoundLedger.stake_of(db, round_id, bettor, round_obj.winning_number)
        if already_claimed or stake <= 0:
            raise NoWinnings()

        # 3. 計算獎金
        payout = calculate_payout(stake)

        # 4. 重新確認餘額
        asset = DatabaseAsset(db, config.staking_asset)
        balance = asset.balance_of(config.engine_account)
        if balance < payout:
            raise InsufficientPayoutFunds(payout, balance)

        # 5. 先記錄，再轉帳
        db.add(Claim(round_id=round_id, bettor=bettor, payout=payout, claimed_by=caller))
        db.flush()
        if not asset.transfer(config.engine_account, bettor, payout):
            raise TransferFailed(config.engine_account, bettor, payout)

        record_event(
            db, event_log.WINNINGS_COLLECTED,
            round_id=round_id, bettor=bettor, amount=payout, collected_by=caller
        )
        return payout

    # ============ 資金（管理員） ============

    @staticmethod
    @transactional
    def withdraw(db: Session, caller: str, to: str, amount: Decimal) -> Decimal:
        """從引擎保管的資產提領給 to"""
        config = SettlementEngine._load_config(db, lock=True)
        SettlementEngine._require_admin(config, caller, "withdraw")

        amount = SettlementEngine._positive(amount)
        asset = DatabaseAsset(db, config.staking_asset)
        if not asset.transfer(config.engine_account, to, amount):
            raise TransferFailed(config.engine_account, to, amount)

        record_event(db, event_log.FUNDS_WITHDRAWN, to=to, amount=amount, asset=config.staking_asset)
        return asset.balance_of(config.engine_account)

    @staticmethod
    @transactional
    def withdraw_from_randomizer(db: Session, caller: str, to: str, amount: Decimal) -> Decimal:
        """
        從預言機的 gas 預付餘額提領給 to

        流程：
        1. 扣掉引擎在預言機的預付餘額
        2. 預言機託管帳戶把資產付給 to

        異常：
            Unauthorized / InvalidAmount
            TransferFailed: 預付餘額不足，或託管帳戶付款失敗
        """
        config = SettlementEngine._load_config(db, lock=True)
        SettlementEngine._require_admin(config, caller, "withdraw from randomizer")

        amount = SettlementEngine._positive(amount)
        randomizer = DatabaseRandomizer(db, config.randomness_oracle)
        if not randomizer.withdraw(config.engine_account, amount):
            raise TransferFailed(config.randomness_oracle, to, amount)

        asset = DatabaseAsset(db, config.staking_asset)
        if not asset.transfer(config.randomness_oracle, to, amount):
            raise TransferFailed(config.randomness_oracle, to, amount)

        record_event(db, event_log.RANDOMIZER_WITHDRAWAL, to=to, amount=amount, oracle=config.randomness_oracle)
        return randomizer.balance_of(config.engine_account)

    @staticmethod
    @transactional
    def deposit_to_randomizer(db: Session, caller: str, amount: Decimal) -> Decimal:
        """
        替引擎的預言機帳戶加值 gas（任何人都可以）

        流程：
        1. 從呼叫者收取 amount（transfer_from，需要事先授權引擎帳戶）
        2. 引擎把資產轉進預言機託管帳戶
        3. 增加引擎在預言機的預付餘額

        異常：
            InvalidAmount
            TransferFailed: 呼叫者授權或餘額不足
        """
        config = SettlementEngine._load_config(db, lock=True)

        amount = SettlementEngine._positive(amount)
        asset = DatabaseAsset(db, config.staking_asset)
        if not asset.transfer_from(caller, config.engine_account, amount):
            raise TransferFailed(caller, config.engine_account, amount)
        if not asset.transfer(config.engine_account, config.randomness_oracle, amount):
            raise TransferFailed(config.engine_account, config.randomness_oracle, amount)

        randomizer = DatabaseRandomizer(db, config.randomness_oracle)
        randomizer.deposit(config.engine_account, amount)

        record_event(db, event_log.RANDOMIZER_DEPOSIT, payer=caller, amount=amount, oracle=config.randomness_oracle)
        return randomizer.balance_of(config.engine_account)

    # ============ 設定（管理員） ============

    @staticmethod
    @transactional
    def set_max_bet(db: Session, caller: str, max_bet: Decimal) -> EngineConfig:
        max_bet = Decimal(max_bet)
        if max_bet < 0:
            raise InvalidAmount(f"Max bet cannot be negative, got {max_bet}")
        return SettlementEngine._update_config(db, caller, "max_bet_per_number", max_bet)

    @staticmethod
    @transactional
    def set_betting_token(db: Session, caller: str, asset_id: str) -> EngineConfig:
        return SettlementEngine._update_config(db, caller, "staking_asset", asset_id)

    @staticmethod
    @transactional
    def set_randomizer(db: Session, caller: str, oracle_id: str) -> EngineConfig:
        return SettlementEngine._update_config(db, caller, "randomness_oracle", oracle_id)

    @staticmethod
    @transactional
    def transfer_ownership(db: Session, caller: str, new_administrator: str) -> EngineConfig:
        return SettlementEngine._update_config(db, caller, "administrator", new_administrator)

    # ============ 查詢 ============

    @staticmethod
    def get_config(db: Session) -> EngineConfig:
        return SettlementEngine._load_config(db)

    @staticmethod
    def get_current_round(db: Session) -> Round:
        round_obj = RoundLedger.get_current_round(db)
        if round_obj is None:
            raise RoundNotFound("current")
        return round_obj

    @staticmethod
    def engine_balance(db: Session) -> Decimal:
        config = SettlementEngine._load_config(db)
        return DatabaseAsset(db, config.staking_asset).balance_of(config.engine_account)

    # ============ 內部工具 ============

    @staticmethod
    def _load_config(db: Session, lock: bool = False) -> EngineConfig:
        if lock:
            config = with_config_lock(db).first()
        else:
            config = db.query(EngineConfig).filter(EngineConfig.id == 1).first()
        if config is None:
            raise RuntimeError("Engine is not bootstrapped")
        return config

    @staticmethod
    def _require_admin(config: EngineConfig, caller: Optional[str], action: str) -> None:
        if caller != config.administrator:
            raise Unauthorized(caller, action)

    @staticmethod
    def _positive(amount) -> Decimal:
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmount(f"Amount must be positive, got {amount}")
        return amount

    @staticmethod
    def _update_config(db: Session, caller: str, field: str, value) -> EngineConfig:
        config = SettlementEngine._load_config(db, lock=True)
        SettlementEngine._require_admin(config, caller, f"set {field}")

        old_value = getattr(config, field)
        setattr(config, field, value)
        record_event(db, event_log.CONFIG_UPDATED, field=field, old=old_value, new=value)

        logger.info(f"Config {field} changed by {caller}")
        return config
