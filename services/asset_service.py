"""
資產服務：下注 / 支付用的代幣帳本（參考實作）

引擎把資產當成不透明的帳本，只依賴：
- transfer_from(payer, recipient, amount) -> bool
- transfer(sender, recipient, amount) -> bool
- balance_of(account) -> Decimal

這個實作把餘額存在同一個資料庫，和引擎共用 Session：
引擎 transaction rollback 時，已完成的轉帳也會一起撤銷，
批次下注因此天然具備 all-or-nothing 的語意。
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from models import AssetBalance, AssetAllowance
from services.payout_service import add_amounts, subtract_amount

logger = logging.getLogger(__name__)


class DatabaseAsset:
    """以 asset_id 區分的餘額與授權額度帳本"""

    def __init__(self, db: Session, asset_id: str):
        self.db = db
        self.asset_id = asset_id

    def balance_of(self, account: str) -> Decimal:
        row = self._balance_row(account, create=False)
        return row.amount if row else Decimal(0)

    def allowance(self, owner: str, spender: str) -> Decimal:
        row = self._allowance_row(owner, spender, create=False)
        return row.amount if row else Decimal(0)

    def approve(self, owner: str, spender: str, amount: Decimal) -> bool:
        amount = Decimal(amount)
        if amount < 0:
            return False
        row = self._allowance_row(owner, spender, create=True)
        row.amount = amount
        self.db.flush()
        return True

    def mint(self, account: str, amount: Decimal) -> bool:
        amount = Decimal(amount)
        if amount <= 0:
            return False
        row = self._balance_row(account, create=True)
        row.amount = add_amounts(row.amount, amount)
        self.db.flush()
        logger.info(f"[{self.asset_id}] minted {amount} to {account}")
        return True

    def transfer(self, sender: str, recipient: str, amount: Decimal) -> bool:
        """
        從 sender 轉帳給 recipient

        返回：
            True 成功；False 金額不合法或餘額不足（不修改任何餘額）
        """
        amount = Decimal(amount)
        if amount <= 0:
            return False

        source = self._balance_row(sender, create=False)
        if source is None or source.amount < amount:
            logger.info(f"[{self.asset_id}] transfer {sender} -> {recipient} of {amount} refused: balance")
            return False

        target = self._balance_row(recipient, create=True)
        source.amount = subtract_amount(source.amount, amount)
        target.amount = add_amounts(target.amount, amount)
        self.db.flush()
        return True

    def transfer_from(self, payer: str, recipient: str, amount: Decimal) -> bool:
        """
        由 recipient（被授權者）從 payer 扣款

        需要 payer 事先 approve(payer, recipient, amount) 足夠額度
        """
        amount = Decimal(amount)
        if amount <= 0:
            return False

        allowance = self._allowance_row(payer, recipient, create=False)
        if allowance is None or allowance.amount < amount:
            logger.info(f"[{self.asset_id}] transfer_from {payer} -> {recipient} of {amount} refused: allowance")
            return False

        if not self.transfer(payer, recipient, amount):
            return False

        allowance.amount = subtract_amount(allowance.amount, amount)
        self.db.flush()
        return True

    def _balance_row(self, account: str, create: bool):
        row = self.db.query(AssetBalance).filter(
            AssetBalance.asset_id == self.asset_id,
            AssetBalance.account == account
        ).first()
        if row is None and create:
            row = AssetBalance(asset_id=self.asset_id, account=account, amount=Decimal(0))
            self.db.add(row)
        return row

    def _allowance_row(self, owner: str, spender: str, create: bool):
        row = self.db.query(AssetAllowance).filter(
            AssetAllowance.asset_id == self.asset_id,
            AssetAllowance.owner == owner,
            AssetAllowance.spender == spender
        ).first()
        if row is None and create:
            row = AssetAllowance(asset_id=self.asset_id, owner=owner, spender=spender, amount=Decimal(0))
            self.db.add(row)
        return row
