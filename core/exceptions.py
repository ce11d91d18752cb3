"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

每個異常都帶有：
- code：穩定的錯誤代碼（對外回傳，不隨訊息文字改變）
- status_code：API 層對應的 HTTP 狀態碼
"""


class RouletteException(Exception):
    """所有輪盤引擎異常的基類"""
    code = "ROULETTE_ERROR"
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__doc__)


# ============ 授權相關異常 ============

class Unauthorized(RouletteException):
    """呼叫者沒有權限執行此操作"""
    code = "UNAUTHORIZED"
    status_code = 403

    def __init__(self, caller, action):
        self.caller = caller
        self.action = action
        super().__init__(f"{caller} is not allowed to {action}")


# ============ Round 狀態機異常 ============

class RoundNotFound(RouletteException):
    """回合不存在"""
    code = "ROUND_NOT_FOUND"
    status_code = 404

    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


class RoundNotTransitionable(RouletteException):
    """回合目前的狀態不允許這個轉換"""
    code = "ROUND_NOT_TRANSITIONABLE"
    status_code = 409


class RoundNotOpenable(RouletteException):
    """回合不是 NOT_STARTED，無法開放下注"""
    code = "ROUND_NOT_OPENABLE"
    status_code = 409


class RoundNotOpen(RouletteException):
    """Round is not open"""
    code = "ROUND_NOT_OPEN"
    status_code = 409


class RoundNotLocked(RouletteException):
    """回合不是 LOCKED（尚未請求亂數）"""
    code = "ROUND_NOT_LOCKED"
    status_code = 409


class RoundNotClosed(RouletteException):
    """回合尚未結算"""
    code = "ROUND_NOT_CLOSED"
    status_code = 409


# ============ 輸入驗證異常 ============

class InvalidNumber(RouletteException):
    """Invalid number"""
    code = "INVALID_NUMBER"
    status_code = 422

    def __init__(self, number):
        self.number = number
        super().__init__(f"Invalid number {number}, must be between 0 and 36")


class InvalidAmount(RouletteException):
    """下注金額必須大於 0"""
    code = "INVALID_AMOUNT"
    status_code = 422


# ============ 經濟規則異常 ============

class MaxBetExceeded(RouletteException):
    """Bet > maxBet"""
    code = "MAX_BET_EXCEEDED"

    def __init__(self, number, total, max_bet):
        self.number = number
        self.total = total
        self.max_bet = max_bet
        super().__init__(f"Bet > maxBet: {total} on number {number} exceeds {max_bet}")


class CannotPayoutWinnings(RouletteException):
    """Cannot payout winnings"""
    code = "CANNOT_PAYOUT_WINNINGS"

    def __init__(self, number, exposure, balance):
        self.number = number
        self.exposure = exposure
        self.balance = balance
        super().__init__(
            f"Cannot payout winnings: exposure {exposure} on number {number} exceeds balance {balance}"
        )


class InsufficientPayoutFunds(RouletteException):
    """引擎餘額不足以支付獎金（補足資金後可以重試）"""
    code = "INSUFFICIENT_PAYOUT_FUNDS"

    def __init__(self, payout, balance):
        self.payout = payout
        self.balance = balance
        super().__init__(f"Payout {payout} exceeds engine balance {balance}")


class NoWinnings(RouletteException):
    """No winnings"""
    code = "NO_WINNINGS"


# ============ 亂數相關異常 ============

class NoSpinResult(RouletteException):
    """尚未收到亂數結果"""
    code = "NO_SPIN_RESULT"
    status_code = 409


class UnknownRandomRequest(RouletteException):
    """收到的 request id 不是目前鎖定回合在等待的請求"""
    code = "UNKNOWN_RANDOM_REQUEST"
    status_code = 409

    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__(f"Random request {request_id} is not outstanding")


class RandomnessAlreadyDelivered(RouletteException):
    """同一個請求已經送達過亂數（拒絕重放）"""
    code = "RANDOMNESS_ALREADY_DELIVERED"
    status_code = 409


class InvalidRandomValue(RouletteException):
    """亂數必須是 0 <= value < 2^256 的整數"""
    code = "INVALID_RANDOM_VALUE"
    status_code = 422


class OracleRequestFailed(RouletteException):
    """亂數預言機拒絕了請求"""
    code = "ORACLE_REQUEST_FAILED"
    status_code = 502


# ============ 整合相關異常 ============

class TransferFailed(RouletteException):
    """資產轉帳失敗（餘額或授權額度不足）"""
    code = "TRANSFER_FAILED"
    status_code = 402

    def __init__(self, source, destination, amount):
        self.source = source
        self.destination = destination
        self.amount = amount
        super().__init__(f"Transfer of {amount} from {source} to {destination} failed")
