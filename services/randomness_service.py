"""
亂數服務：外部亂數預言機的參考實作

引擎依賴的介面：
- request_random(client, nonce) -> request_id（同步受理）
- 結果以 callback 非同步送回：POST /api/oracle/callback（只有預言機本身可以呼叫）

另外預言機替每個 client 保存一筆 gas 預付餘額（deposit / withdraw）
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from models import RandomRequest, RandomizerAccount
from core.exceptions import OracleRequestFailed
from services.payout_service import add_amounts, subtract_amount

logger = logging.getLogger(__name__)


class DatabaseRandomizer:
    """以資料庫記錄請求與預付餘額的亂數預言機"""

    def __init__(self, db: Session, oracle_id: str):
        self.db = db
        self.oracle_id = oracle_id

    def request_random(self, client: str, nonce) -> str:
        """
        受理一個亂數請求

        nonce 由呼叫者決定，同一個 client 重複使用 nonce 會被拒絕（預言機端去重）

        返回：
            request_id（字串）

        異常：
            OracleRequestFailed: nonce 重複
        """
        nonce = str(nonce)
        duplicate = self.db.query(RandomRequest).filter(
            RandomRequest.oracle_id == self.oracle_id,
            RandomRequest.client == client,
            RandomRequest.nonce == nonce
        ).first()
        if duplicate:
            raise OracleRequestFailed(f"Nonce {nonce} already used by {client}")

        request = RandomRequest(oracle_id=self.oracle_id, client=client, nonce=nonce, fulfilled=False)
        self.db.add(request)
        self.db.flush()

        logger.info(f"[{self.oracle_id}] accepted request {request.id} from {client} (nonce={nonce})")
        return str(request.id)

    def mark_fulfilled(self, request_id: str) -> bool:
        """
        標記請求已送達

        返回：
            False 如果請求不存在或已經送達過
        """
        request = self._get_request(request_id)
        if request is None or request.fulfilled:
            return False
        request.fulfilled = True
        self.db.flush()
        return True

    def is_pending(self, request_id: str) -> bool:
        request = self._get_request(request_id)
        return request is not None and not request.fulfilled

    def balance_of(self, client: str) -> Decimal:
        account = self._account(client, create=False)
        return account.balance if account else Decimal(0)

    def deposit(self, client: str, amount: Decimal) -> bool:
        amount = Decimal(amount)
        if amount <= 0:
            return False
        account = self._account(client, create=True)
        account.balance = add_amounts(account.balance, amount)
        self.db.flush()
        return True

    def withdraw(self, client: str, amount: Decimal) -> bool:
        amount = Decimal(amount)
        account = self._account(client, create=False)
        if amount <= 0 or account is None or account.balance < amount:
            return False
        account.balance = subtract_amount(account.balance, amount)
        self.db.flush()
        return True

    def _get_request(self, request_id: str):
        try:
            key = int(request_id)
        except (TypeError, ValueError):
            return None
        return self.db.query(RandomRequest).filter(
            RandomRequest.oracle_id == self.oracle_id,
            RandomRequest.id == key
        ).first()

    def _account(self, client: str, create: bool):
        account = self.db.query(RandomizerAccount).filter(
            RandomizerAccount.oracle_id == self.oracle_id,
            RandomizerAccount.client == client
        ).first()
        if account is None and create:
            account = RandomizerAccount(oracle_id=self.oracle_id, client=client, balance=Decimal(0))
            self.db.add(account)
        return account
