"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理回合狀態轉換
- RoundLedger：回合與下注帳本（純記帳）
- SettlementEngine：回合生命週期、下注、開獎、領獎
- Event Log：記錄所有重要事件
- Locks：並發控制工具
"""
