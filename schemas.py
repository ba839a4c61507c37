"""
Pydantic Schemas：API 的 request / response 格式
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models import RaffleState, PayoutStatus, UINT256_MAX


# ============ Raffle ============

class RaffleCreate(BaseModel):
    """未提供的欄位使用 Settings 的預設值"""
    entrance_fee: Optional[int] = Field(None, ge=0, le=UINT256_MAX)
    interval_seconds: Optional[int] = Field(None, ge=0)
    key_hash: Optional[str] = None
    subscription_id: Optional[int] = Field(None, ge=0, le=UINT256_MAX)
    callback_gas_limit: Optional[int] = Field(None, gt=0)
    request_confirmations: Optional[int] = Field(None, ge=0)
    native_payment: Optional[bool] = None


class RaffleResponse(BaseModel):
    raffle_id: str
    state: RaffleState
    entrance_fee: int
    interval_seconds: int
    key_hash: str
    subscription_id: int
    callback_gas_limit: int
    request_confirmations: int
    num_words: int
    native_payment: bool
    last_timestamp: int
    balance: int
    number_of_players: int
    recent_winner: Optional[str]
    round_number: int
    pending_request_id: Optional[str]


# ============ Entry ============

class EnterRequest(BaseModel):
    player: str = Field(..., min_length=1, max_length=128)
    amount: int = Field(..., ge=0, le=UINT256_MAX)


class EnterResponse(BaseModel):
    player: str
    position: int
    amount: int


class PlayerResponse(BaseModel):
    index: int
    player: str


class PlayersResponse(BaseModel):
    players: List[str]


# ============ Upkeep ============

class UpkeepCheckResponse(BaseModel):
    upkeep_needed: bool
    time_passed: bool
    is_open: bool
    has_balance: bool
    has_players: bool


class UpkeepPerformResponse(BaseModel):
    request_id: str


# ============ Fulfillment ============

class FulfillRequest(BaseModel):
    request_id: str
    random_words: List[int] = Field(..., min_length=1)


class PayoutResponse(BaseModel):
    round_number: int
    request_id: str
    winner: str
    winner_index: int
    amount: int
    status: PayoutStatus
    error: Optional[str]
    created_at: Optional[datetime]


# ============ Queries ============

class ValueResponse(BaseModel):
    value: Any


class EventResponse(BaseModel):
    event_type: str
    data: Dict[str, Any]
    created_at: Optional[datetime]
