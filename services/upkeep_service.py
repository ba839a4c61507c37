"""
Upkeep 判斷服務：決定是否可以開始新一輪的抽獎

純計算邏輯，不讀資料庫也不改狀態。四個條件必須同時成立：
1. 距離回合開始已經超過設定的間隔
2. 狀態為 OPEN
3. 獎池餘額 > 0
4. 參加人數 > 0
"""
from dataclasses import dataclass
from typing import Optional

from models import RaffleState
from services.round_clock import interval_elapsed


@dataclass(frozen=True)
class UpkeepCheck:
    time_passed: bool
    is_open: bool
    has_balance: bool
    has_players: bool

    @property
    def upkeep_needed(self) -> bool:
        return self.time_passed and self.is_open and self.has_balance and self.has_players


def evaluate_upkeep(
    state: RaffleState,
    last_timestamp: int,
    interval_seconds: int,
    balance: int,
    participant_count: int,
    now: Optional[int] = None,
) -> UpkeepCheck:
    """
    評估 upkeep 的四個條件

    參數：
        state: 目前狀態
        last_timestamp: 回合開始時間（epoch 秒）
        interval_seconds: 回合間隔
        balance: 獎池餘額
        participant_count: 參加人數
        now: 目前時間（測試用，預設為現在）

    返回：
        UpkeepCheck（每個條件各自的結果 + upkeep_needed）
    """
    return UpkeepCheck(
        time_passed=interval_elapsed(last_timestamp, interval_seconds, now),
        is_open=state == RaffleState.OPEN,
        has_balance=balance > 0,
        has_players=participant_count > 0,
    )
