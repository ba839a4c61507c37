"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理 OPEN / CALCULATING 的狀態轉換
- Manager：管理 Raffle 的生命週期（報名、upkeep、開獎、派彩）
- Scheduler：定期輪詢 upkeep
- Locks：並發控制工具
"""
