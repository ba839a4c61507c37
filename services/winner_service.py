"""
開獎服務：由隨機數決定得主

純計算邏輯，同樣的輸入永遠得到同樣的得主
"""
from typing import Sequence

from models import UINT256_MAX
from core.exceptions import InvalidRandomWordsError


def select_winner_index(random_words: Sequence[int], participant_count: int) -> int:
    """
    winner_index = random_words[0] mod participant_count

    只使用第一個隨機數，其餘忽略。

    參數：
        random_words: Oracle 回傳的隨機數序列
        participant_count: 參加人數

    返回：
        得主在參加者列表中的索引（依加入順序）

    異常：
        InvalidRandomWordsError: 沒有隨機數，或隨機數不在 uint256 範圍內
        ValueError: 沒有參加者
    """
    if not random_words:
        raise InvalidRandomWordsError("Expected at least one random word")
    word = random_words[0]
    if word < 0 or word > UINT256_MAX:
        raise InvalidRandomWordsError(f"Random word must be a uint256, got {word}")
    if participant_count <= 0:
        raise ValueError("Cannot select a winner without participants")
    return word % participant_count
