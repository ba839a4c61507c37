"""
服務層

這個 package 包含純計算邏輯與外部協作者的 client，不負責狀態轉換：
- round_clock / upkeep_service：upkeep 條件判斷
- winner_service：由隨機數選出得主
- oracle_service：Randomness Oracle client
- payout_service：派彩 gateway
"""
