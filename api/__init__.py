"""
API 層

FastAPI routers，只負責請求 / 回應轉換，業務邏輯全部在 core.SettlementEngine：
- admin：回合生命週期、設定、資金
- bets：下注、查詢、領獎
- rounds：回合查詢
- oracle：亂數 callback
- asset：參考資產帳本
"""
