"""
獎金服務：輪盤的號碼、開獎與 Payout 計算邏輯

純計算邏輯，不涉及狀態轉換，也不碰資料庫
"""
from decimal import Context, Decimal

# 歐式輪盤：0-36
MIN_NUMBER = 0
MAX_NUMBER = 36
POCKET_COUNT = MAX_NUMBER - MIN_NUMBER + 1

# 單號 35:1 加上退回本金 = 36 倍
PAYOUT_MULTIPLIER = 36

RANDOM_VALUE_BITS = 256

# 金額運算一律用這個 context：256-bit 整數部分加 18 位小數都不會被四捨五入
# （Decimal 預設只有 28 位有效數字）
AMOUNT_CONTEXT = Context(prec=100)


def is_valid_number(number) -> bool:
    """號碼必須是 0-36 的整數（bool 不算）"""
    return (
        isinstance(number, int)
        and not isinstance(number, bool)
        and MIN_NUMBER <= number <= MAX_NUMBER
    )


def winning_number_from_random(raw_value: int) -> int:
    """
    把 256-bit 亂數轉成中獎號碼

    規則：
        winning_number = raw_value mod 37

    均勻的 256-bit 輸入取模 37 的偏差不超過 37 / 2^256，
    可以忽略，不需要 rejection sampling

    範例：
        winning_number_from_random(24) -> 24
        winning_number_from_random(37 * 5 + 24) -> 24
    """
    if raw_value < 0 or raw_value >= 2 ** RANDOM_VALUE_BITS:
        raise ValueError(f"Random value must fit in {RANDOM_VALUE_BITS} bits")
    return raw_value % POCKET_COUNT


def calculate_payout(stake_on_winning_number: Decimal) -> Decimal:
    """
    計算獎金

    規則：
        payout = 中獎號碼上的累計下注 * 36

    小數下注也完全精確（在 AMOUNT_CONTEXT 內運算）

    範例：
        stake 100 -> payout 3600
        stake 0   -> payout 0
    """
    return AMOUNT_CONTEXT.multiply(Decimal(stake_on_winning_number), PAYOUT_MULTIPLIER)


def worst_case_exposure(total_stake_on_number: Decimal) -> Decimal:
    """
    某號碼開出時引擎需要支付的總額（所有玩家加總）

    用途：
        下注時確認引擎餘額足以支付最壞情況
    """
    return AMOUNT_CONTEXT.multiply(Decimal(total_stake_on_number), PAYOUT_MULTIPLIER)


def can_cover_exposure(total_stake_on_number: Decimal, balance: Decimal) -> bool:
    return worst_case_exposure(total_stake_on_number) <= Decimal(balance)


def add_amounts(*amounts) -> Decimal:
    """精確加總（不受預設 28 位精度限制）"""
    total = Decimal(0)
    for amount in amounts:
        total = AMOUNT_CONTEXT.add(total, Decimal(amount))
    return total


def subtract_amount(balance: Decimal, amount: Decimal) -> Decimal:
    return AMOUNT_CONTEXT.subtract(Decimal(balance), Decimal(amount))
