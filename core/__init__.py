"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有階段轉換
- Barrier：追蹤每個階段還在等待的玩家
- Advancer：規劃新回合 / 新任務（純函式）
- Manager：管理 Game、Mission、Round 的生命週期與遊戲內動作
- Locks：並發控制工具
"""
