"""
共用的 FastAPI dependencies
"""
from fastapi import Header, HTTPException


def get_caller(x_caller: str = Header(..., alias="X-Caller")) -> str:
    """
    取得呼叫者身分（principal）

    身分驗證由前面的 gateway 負責，這裡只讀取它轉發的 X-Caller header
    """
    caller = x_caller.strip()
    if not caller:
        raise HTTPException(status_code=401, detail="Missing caller")
    return caller
