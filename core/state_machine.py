"""
狀態機：集中管理 Raffle 的所有狀態轉換

合法轉換：
    OPEN        -> CALCULATING   （perform_upkeep 發出隨機數請求）
    CALCULATING -> OPEN          （fulfill 開獎完成）

沒有終止狀態，Raffle 會無限循環。
所有狀態變更都必須經過這裡，並自動記錄 RAFFLE_STATE_CHANGED 事件。
"""
import logging

from sqlalchemy.orm import Session

from models import Raffle, RaffleState, EventLog
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RaffleStateMachine:
    """Raffle 狀態機"""

    TRANSITIONS = {
        RaffleState.OPEN: {RaffleState.CALCULATING},
        RaffleState.CALCULATING: {RaffleState.OPEN},
    }

    @classmethod
    def can_transition(cls, from_state: RaffleState, to_state: RaffleState) -> bool:
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def transition(cls, raffle: Raffle, to_state: RaffleState, db: Session) -> Raffle:
        """
        轉換 Raffle 狀態

        參數：
            raffle: 已鎖定的 Raffle（呼叫者負責 with_raffle_lock）
            to_state: 目標狀態
            db: SQLAlchemy Session

        返回：
            更新後的 Raffle

        異常：
            InvalidStateTransition: 轉換不合法

        注意：
            - 只 flush 不 commit，讓外層 transaction 決定
            - 呼叫外部之前，外層必須先 commit 轉換結果
        """
        from_state = raffle.state
        if not cls.can_transition(from_state, to_state):
            raise InvalidStateTransition(
                f"Cannot transition raffle {raffle.id} from "
                f"{from_state.value} to {to_state.value}"
            )

        raffle.state = to_state
        db.add(EventLog(
            raffle_id=raffle.id,
            event_type="RAFFLE_STATE_CHANGED",
            data={"from": from_state.value, "to": to_state.value}
        ))
        db.flush()

        logger.info(f"Raffle {raffle.id}: {from_state.value} -> {to_state.value}")
        return raffle
