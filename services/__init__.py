"""
服務層

這個 package 包含純計算邏輯與外部協作者的參考實作，不負責狀態轉換：
- PayoutService：號碼驗證、開獎與獎金計算
- HistoryService：玩家歷史紀錄
- AssetService：下注資產帳本
- RandomnessService：亂數預言機
"""
