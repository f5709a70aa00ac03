"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- MissionSizeService：任務人數對照表
- VoteService：投票驗證與計票
- FactionService：間諜分配與陣營資訊
- NamingService：Session code 生成
"""
