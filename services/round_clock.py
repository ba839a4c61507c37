"""
回合時鐘：upkeep 判斷中與時間有關的部分

時間戳記一律是整數 epoch 秒（回合間隔的設定單位）
"""
import time
from typing import Optional


def current_timestamp() -> int:
    return int(time.time())


def seconds_elapsed(last_timestamp: int, now: Optional[int] = None) -> int:
    if now is None:
        now = current_timestamp()
    return now - last_timestamp


def interval_elapsed(last_timestamp: int, interval_seconds: int, now: Optional[int] = None) -> bool:
    """
    距離 last_timestamp 至少經過 interval_seconds 秒

    邊界包含在內：t=100 開始、間隔 30 秒的回合在 t=130 就到期
    """
    return seconds_elapsed(last_timestamp, now) >= interval_seconds
