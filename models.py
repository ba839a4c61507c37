"""
SQLAlchemy Models

Raffle 是唯一的聚合根：
- Raffle：狀態、不可變設定、獎池餘額、最近得主、待處理的隨機數請求
- Entry：本回合的參加者（依加入順序，允許重複）
- RandomnessRequest：向 Oracle 發出的每一次請求
- Payout：每回合的派彩紀錄（失敗時保留以便外部處理）
- EventLog：所有通知事件
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
)

from database import Base

UINT256_MAX = 2**256 - 1


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Uint256(TypeDecorator):
    """
    uint256 數值（wei 金額、訂閱 ID、隨機數）

    以十進位字串儲存，讀寫時轉成 int。只做等值查詢，不在 SQL 裡運算。
    超出 0 ~ 2**256 - 1 的值寫入時拋出 ValueError。
    """
    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = int(value)
        if value < 0 or value > UINT256_MAX:
            raise ValueError(f"{value} is out of uint256 range")
        return str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else int(value)


class RaffleState(str, enum.Enum):
    OPEN = "OPEN"
    CALCULATING = "CALCULATING"


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    FULFILLED = "FULFILLED"
    SUPERSEDED = "SUPERSEDED"
    # 請求送出中就收到的答案，等 request id 記錄後再處理
    HELD = "HELD"


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class Raffle(Base):
    __tablename__ = "raffles"

    id = Column(String(36), primary_key=True, default=_uuid)
    state = Column(Enum(RaffleState), nullable=False, default=RaffleState.OPEN)

    # 不可變設定
    entrance_fee = Column(Uint256, nullable=False)
    interval_seconds = Column(Integer, nullable=False)
    key_hash = Column(String(66), nullable=False)
    subscription_id = Column(Uint256, nullable=False, default=0)
    callback_gas_limit = Column(Integer, nullable=False)
    request_confirmations = Column(Integer, nullable=False)
    num_words = Column(Integer, nullable=False, default=1)
    native_payment = Column(Boolean, nullable=False, default=False)

    # 回合資料
    last_timestamp = Column(BigInteger, nullable=False)
    balance = Column(Uint256, nullable=False, default=0)
    recent_winner = Column(String(128), nullable=True)
    round_number = Column(Integer, nullable=False, default=0)
    pending_request_id = Column(String(128), nullable=True)
    requested_at = Column(BigInteger, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Entry(Base):
    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_id = Column(String(36), ForeignKey("raffles.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    player = Column(String(128), nullable=False)
    amount = Column(Uint256, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class RandomnessRequest(Base):
    __tablename__ = "randomness_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_id = Column(String(36), ForeignKey("raffles.id"), nullable=False, index=True)
    request_id = Column(String(128), nullable=False, index=True)
    status = Column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING)
    round_number = Column(Integer, nullable=False)
    key_hash = Column(String(66), nullable=False)
    subscription_id = Column(Uint256, nullable=False)
    request_confirmations = Column(Integer, nullable=False)
    callback_gas_limit = Column(Integer, nullable=False)
    num_words = Column(Integer, nullable=False)
    native_payment = Column(Boolean, nullable=False)
    random_word = Column(Uint256, nullable=True)
    requested_at = Column(BigInteger, nullable=False)
    fulfilled_at = Column(BigInteger, nullable=True)


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_id = Column(String(36), ForeignKey("raffles.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    request_id = Column(String(128), nullable=False)
    winner = Column(String(128), nullable=False)
    winner_index = Column(Integer, nullable=False)
    amount = Column(Uint256, nullable=False)
    status = Column(Enum(PayoutStatus), nullable=False, default=PayoutStatus.PENDING)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    raffle_id = Column(String(36), ForeignKey("raffles.id"), nullable=False, index=True)
    event_type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
