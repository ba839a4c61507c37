"""
Raffle API Endpoints

重點：
1. 所有業務邏輯集中在 RaffleManager，這裡只做參數轉換與錯誤對應
2. 前置條件錯誤 -> 400，找不到 -> 404，Oracle 回呼未授權 -> 403，
   Oracle 或派彩失敗 -> 502，其他 -> 500
4. 回呼比 request id 先到時回 202（答案已暫存）
3. fulfill 只接受帶正確 X-Oracle-Token 的呼叫（受信任的 Oracle 回呼路徑）
"""
import logging
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from sqlalchemy.orm import Session

from database import get_db, get_settings, Settings
from models import Raffle
from schemas import (
    RaffleCreate,
    RaffleResponse,
    EnterRequest,
    EnterResponse,
    PlayerResponse,
    PlayersResponse,
    UpkeepCheckResponse,
    UpkeepPerformResponse,
    FulfillRequest,
    PayoutResponse,
    ValueResponse,
    EventResponse,
)
from core.raffle_manager import RaffleManager
from core.collaborators import get_oracle, get_payout_gateway
from core.exceptions import (
    RaffleNotFound,
    ParticipantNotFound,
    NotOpenError,
    InsufficientFeeError,
    UpkeepNotNeededError,
    NotCalculatingError,
    UnknownRequestError,
    InvalidRandomWordsError,
    OracleRequestError,
    PayoutTransferFailedError,
)
from services.oracle_service import RandomnessOracle
from services.payout_service import PayoutGateway

router = APIRouter(prefix="/api/raffles", tags=["raffles"])
logger = logging.getLogger(__name__)


def _raffle_response(raffle: Raffle, db: Session) -> RaffleResponse:
    return RaffleResponse(
        raffle_id=raffle.id,
        state=raffle.state,
        entrance_fee=raffle.entrance_fee,
        interval_seconds=raffle.interval_seconds,
        key_hash=raffle.key_hash,
        subscription_id=raffle.subscription_id,
        callback_gas_limit=raffle.callback_gas_limit,
        request_confirmations=raffle.request_confirmations,
        num_words=raffle.num_words,
        native_payment=raffle.native_payment,
        last_timestamp=raffle.last_timestamp,
        balance=raffle.balance,
        number_of_players=RaffleManager.get_participant_count(db, raffle.id),
        recent_winner=raffle.recent_winner,
        round_number=raffle.round_number,
        pending_request_id=raffle.pending_request_id,
    )


@router.post("", response_model=RaffleResponse)
def create_raffle(
    body: RaffleCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings)
):
    """
    建立 Raffle

    未指定的設定使用 Settings（環境變數 / .env）的預設值，
    建立之後設定不可變更。
    """
    def pick(value, default):
        return default if value is None else value

    try:
        raffle = RaffleManager.create_raffle(
            db,
            entrance_fee=pick(body.entrance_fee, settings.entrance_fee),
            interval_seconds=pick(body.interval_seconds, settings.interval_seconds),
            key_hash=pick(body.key_hash, settings.key_hash),
            subscription_id=pick(body.subscription_id, settings.subscription_id),
            callback_gas_limit=pick(body.callback_gas_limit, settings.callback_gas_limit),
            request_confirmations=pick(body.request_confirmations, settings.request_confirmations),
            native_payment=pick(body.native_payment, settings.native_payment),
        )
        return _raffle_response(raffle, db)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create raffle: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[RaffleResponse])
def list_raffles(db: Session = Depends(get_db)):
    return [_raffle_response(raffle, db) for raffle in RaffleManager.list_raffles(db)]


@router.get("/{raffle_id}", response_model=RaffleResponse)
def get_raffle(raffle_id: str, db: Session = Depends(get_db)):
    try:
        raffle = RaffleManager.get_raffle_by_id(db, raffle_id)
        return _raffle_response(raffle, db)
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


@router.post("/{raffle_id}/enter", response_model=EnterResponse)
def enter_raffle(raffle_id: str, body: EnterRequest, db: Session = Depends(get_db)):
    """
    報名（參加者 endpoint）

    前置條件：
    - 狀態必須是 OPEN
    - amount >= entrance_fee（超過的部分留在獎池）
    """
    try:
        entry = RaffleManager.enter(db, raffle_id, body.player, body.amount)
        return EnterResponse(player=entry.player, position=entry.position, amount=entry.amount)

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    except (NotOpenError, InsufficientFeeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to enter raffle: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{raffle_id}/upkeep", response_model=UpkeepCheckResponse)
def check_upkeep(raffle_id: str, db: Session = Depends(get_db)):
    """唯讀的 upkeep 判斷（給外部排程輪詢）"""
    try:
        check = RaffleManager.check_upkeep(db, raffle_id)
        return UpkeepCheckResponse(
            upkeep_needed=check.upkeep_needed,
            time_passed=check.time_passed,
            is_open=check.is_open,
            has_balance=check.has_balance,
            has_players=check.has_players,
        )
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


@router.post("/{raffle_id}/upkeep", response_model=UpkeepPerformResponse)
def perform_upkeep(
    raffle_id: str,
    db: Session = Depends(get_db),
    oracle: RandomnessOracle = Depends(get_oracle),
    payout_gateway: PayoutGateway = Depends(get_payout_gateway)
):
    """
    觸發開獎（OPEN -> CALCULATING + 發出隨機數請求）

    條件不成立時回 400，detail 帶 balance / 參加人數 / 狀態
    """
    try:
        request_id = RaffleManager.perform_upkeep(
            db, raffle_id, oracle, payout_gateway=payout_gateway
        )
        return UpkeepPerformResponse(request_id=request_id)

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    except UpkeepNotNeededError as e:
        raise HTTPException(status_code=400, detail={
            "error": "UpkeepNotNeeded",
            "balance": e.balance,
            "participant_count": e.participant_count,
            "state": e.state.value,
        })
    except (OracleRequestError, PayoutTransferFailedError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to perform upkeep: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{raffle_id}/fulfill", response_model=Optional[PayoutResponse])
def fulfill_random_words(
    raffle_id: str,
    body: FulfillRequest,
    response: Response,
    x_oracle_token: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    oracle: RandomnessOracle = Depends(get_oracle),
    payout_gateway: PayoutGateway = Depends(get_payout_gateway)
):
    """
    Oracle 回呼：開獎 + 派彩（Oracle endpoint）

    派彩失敗時回 502：回合狀態已經重設為 OPEN，Payout 標記為 FAILED，
    需要人工處理，不會自動重試。
    請求還在送出途中（還沒有 request id）時回 202，答案暫存到 request id 記錄下來。
    """
    if not x_oracle_token or not secrets.compare_digest(
        x_oracle_token, settings.oracle_callback_token
    ):
        raise HTTPException(status_code=403, detail="Only the oracle can fulfill")

    try:
        payout = RaffleManager.fulfill_random_words(
            db, raffle_id, body.request_id, body.random_words, payout_gateway
        )
        oracle.mark_fulfilled(body.request_id)
        if payout is None:
            response.status_code = 202
            return None
        return _payout_response(payout)

    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    except (NotCalculatingError, UnknownRequestError, InvalidRandomWordsError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PayoutTransferFailedError as e:
        oracle.mark_fulfilled(body.request_id)
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to fulfill random words: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


# ============ 查詢 ============

@router.get("/{raffle_id}/players", response_model=PlayersResponse)
def get_players(raffle_id: str, db: Session = Depends(get_db)):
    try:
        return PlayersResponse(players=RaffleManager.get_players(db, raffle_id))
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


@router.get("/{raffle_id}/players/{index}", response_model=PlayerResponse)
def get_player(raffle_id: str, index: int, db: Session = Depends(get_db)):
    try:
        return PlayerResponse(index=index, player=RaffleManager.get_player(db, raffle_id, index))
    except (RaffleNotFound, ParticipantNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{raffle_id}/entrance-fee", response_model=ValueResponse)
def get_entrance_fee(raffle_id: str, db: Session = Depends(get_db)):
    return _value_or_404(RaffleManager.get_entrance_fee, db, raffle_id)


@router.get("/{raffle_id}/state", response_model=ValueResponse)
def get_state(raffle_id: str, db: Session = Depends(get_db)):
    return _value_or_404(RaffleManager.get_state, db, raffle_id)


@router.get("/{raffle_id}/last-timestamp", response_model=ValueResponse)
def get_last_timestamp(raffle_id: str, db: Session = Depends(get_db)):
    return _value_or_404(RaffleManager.get_last_timestamp, db, raffle_id)


@router.get("/{raffle_id}/recent-winner", response_model=ValueResponse)
def get_recent_winner(raffle_id: str, db: Session = Depends(get_db)):
    return _value_or_404(RaffleManager.get_recent_winner, db, raffle_id)


@router.get("/{raffle_id}/balance", response_model=ValueResponse)
def get_balance(raffle_id: str, db: Session = Depends(get_db)):
    return _value_or_404(RaffleManager.get_balance, db, raffle_id)


@router.get("/{raffle_id}/number-of-players", response_model=ValueResponse)
def get_number_of_players(raffle_id: str, db: Session = Depends(get_db)):
    return _value_or_404(RaffleManager.get_number_of_players, db, raffle_id)


@router.get("/{raffle_id}/events", response_model=List[EventResponse])
def get_events(
    raffle_id: str,
    event_type: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    try:
        events = RaffleManager.get_events(db, raffle_id, event_type)
        return [
            EventResponse(event_type=e.event_type, data=e.data, created_at=e.created_at)
            for e in events
        ]
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


@router.get("/{raffle_id}/payouts", response_model=List[PayoutResponse])
def get_payouts(raffle_id: str, db: Session = Depends(get_db)):
    try:
        return [_payout_response(p) for p in RaffleManager.get_payouts(db, raffle_id)]
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")


def _value_or_404(getter, db: Session, raffle_id: str) -> ValueResponse:
    try:
        value = getter(db, raffle_id)
    except RaffleNotFound:
        raise HTTPException(status_code=404, detail="Raffle not found")
    return ValueResponse(value=getattr(value, "value", value))


def _payout_response(payout) -> PayoutResponse:
    return PayoutResponse(
        round_number=payout.round_number,
        request_id=payout.request_id,
        winner=payout.winner,
        winner_index=payout.winner_index,
        amount=payout.amount,
        status=payout.status,
        error=payout.error,
        created_at=payout.created_at,
    )
