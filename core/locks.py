"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
SQLite 會忽略 FOR UPDATE，但它本身一次只允許一個寫入者
"""
from sqlalchemy.orm import Session, Query

from models import Raffle, RandomnessRequest


def with_raffle_lock(raffle_id: str, db: Session) -> Query:
    """
    鎖定一個 Raffle（行級鎖）

    使用場景：
    - 報名（檢查狀態 + 追加參加者 + 累加獎池）
    - perform_upkeep（OPEN -> CALCULATING，防止重複請求隨機數）
    - fulfill（CALCULATING -> OPEN，防止重複開獎）

    範例：
        raffle = with_raffle_lock(raffle_id, db).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)
        raffle.state = RaffleState.CALCULATING
        db.commit()

    參數：
        raffle_id: Raffle ID
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Raffle).filter(
        Raffle.id == raffle_id
    ).with_for_update(nowait=False)


def with_request_lock(raffle_id: str, request_id: str, db: Session) -> Query:
    """
    鎖定一筆隨機數請求紀錄

    參數：
        raffle_id: Raffle ID
        request_id: Oracle 指派的 request id
        db: SQLAlchemy Session

    返回：
        Query object
    """
    return db.query(RandomnessRequest).filter(
        RandomnessRequest.raffle_id == raffle_id,
        RandomnessRequest.request_id == request_id
    ).with_for_update(nowait=False)
