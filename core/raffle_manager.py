"""
Raffle Manager：管理 Raffle 的完整生命週期

職責：
1. 建立 Raffle（設定建立後不可變更）
2. 報名（Entry Ledger）
3. Upkeep 判斷與觸發（發出隨機數請求）
4. 隨機數回呼：開獎 + 派彩
5. 查詢

原則：
- 所有狀態變更經過 RaffleStateMachine
- 先改內部狀態並 commit（Effects），再呼叫外部（Interactions）
- 前置條件失敗時整個操作 rollback，不留下部分效果
- 外部呼叫失敗時用補償轉換還原狀態
"""
from sqlalchemy.orm import Session
from typing import List, Optional, Sequence, Tuple
import logging

from models import (
    Raffle,
    RaffleState,
    Entry,
    RandomnessRequest,
    RequestStatus,
    Payout,
    PayoutStatus,
    EventLog,
    UINT256_MAX,
)
from core.state_machine import RaffleStateMachine
from core.locks import with_raffle_lock, with_request_lock
from core.exceptions import (
    RaffleNotFound,
    ParticipantNotFound,
    NotOpenError,
    InsufficientFeeError,
    UpkeepNotNeededError,
    NotCalculatingError,
    UnknownRequestError,
    RequestNotStale,
    PayoutTransferFailedError,
)
from services.oracle_service import RandomnessOracle, RandomWordsRequest
from services.payout_service import PayoutGateway
from services.round_clock import current_timestamp
from services.upkeep_service import UpkeepCheck, evaluate_upkeep
from services.winner_service import select_winner_index
from database import transactional

logger = logging.getLogger(__name__)

NUM_WORDS = 1


class RaffleManager:
    """Raffle 生命週期管理器"""

    @staticmethod
    @transactional
    def create_raffle(
        db: Session,
        entrance_fee: int,
        interval_seconds: int,
        key_hash: str,
        subscription_id: int,
        callback_gas_limit: int,
        request_confirmations: int,
        native_payment: bool = False,
        now: Optional[int] = None,
    ) -> Raffle:
        """
        建立新的 Raffle（狀態 OPEN，回合從現在開始）

        異常：
            ValueError: 設定值為負，或報名費超出 uint256
        """
        if entrance_fee < 0 or interval_seconds < 0:
            raise ValueError(
                f"entrance_fee and interval_seconds must be >= 0, "
                f"got {entrance_fee} and {interval_seconds}"
            )
        if entrance_fee > UINT256_MAX:
            raise ValueError(f"entrance_fee {entrance_fee} exceeds uint256")

        raffle = Raffle(
            state=RaffleState.OPEN,
            entrance_fee=entrance_fee,
            interval_seconds=interval_seconds,
            key_hash=key_hash,
            subscription_id=subscription_id,
            callback_gas_limit=callback_gas_limit,
            request_confirmations=request_confirmations,
            num_words=NUM_WORDS,
            native_payment=native_payment,
            last_timestamp=now if now is not None else current_timestamp(),
            balance=0,
            round_number=0,
        )
        db.add(raffle)
        db.flush()  # 取得 raffle.id

        db.add(EventLog(
            raffle_id=raffle.id,
            event_type="RAFFLE_CREATED",
            data={"entrance_fee": entrance_fee, "interval_seconds": interval_seconds}
        ))

        logger.info(
            f"Created raffle {raffle.id} (fee={entrance_fee}, interval={interval_seconds}s)"
        )
        return raffle

    # ============ Entry Ledger ============

    @staticmethod
    @transactional
    def enter(db: Session, raffle_id: str, player: str, amount: int) -> Entry:
        """
        報名參加本回合

        前置條件：
        1. Raffle 必須存在
        2. 狀態必須是 OPEN
        3. amount >= entrance_fee

        超過報名費的部分留在獎池，不退還。

        參數：
            db: SQLAlchemy Session
            raffle_id: Raffle ID
            player: 參加者地址
            amount: 支付金額

        返回：
            新建立的 Entry

        異常：
            RaffleNotFound / NotOpenError / InsufficientFeeError
            ValueError: 獎池會超出 uint256
        """
        # 1. 取得並鎖定 Raffle
        raffle = with_raffle_lock(raffle_id, db).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)

        # 2. 驗證前置條件
        if raffle.state != RaffleState.OPEN:
            raise NotOpenError(raffle.state)
        if amount < raffle.entrance_fee:
            raise InsufficientFeeError(amount, raffle.entrance_fee)
        if raffle.balance + amount > UINT256_MAX:
            raise ValueError(f"Pot of raffle {raffle_id} would exceed uint256")

        # 3. 追加參加者，累加獎池
        position = RaffleManager.get_participant_count(db, raffle_id)
        entry = Entry(raffle_id=raffle_id, position=position, player=player, amount=amount)
        db.add(entry)
        raffle.balance += amount

        # 4. 記錄事件
        db.add(EventLog(
            raffle_id=raffle_id,
            event_type="RAFFLE_ENTERED",
            data={"player": player, "amount": amount}
        ))

        logger.info(f"{player} entered raffle {raffle_id} with {amount} (position {position})")
        return entry

    # ============ Upkeep ============

    @staticmethod
    def check_upkeep(db: Session, raffle_id: str, now: Optional[int] = None) -> UpkeepCheck:
        """
        唯讀的 upkeep 判斷，任何人隨時可以呼叫（例如外部排程輪詢）

        異常：
            RaffleNotFound
        """
        raffle = RaffleManager.get_raffle_by_id(db, raffle_id)
        return evaluate_upkeep(
            state=raffle.state,
            last_timestamp=raffle.last_timestamp,
            interval_seconds=raffle.interval_seconds,
            balance=raffle.balance,
            participant_count=RaffleManager.get_participant_count(db, raffle_id),
            now=now,
        )

    @staticmethod
    def perform_upkeep(
        db: Session,
        raffle_id: str,
        oracle: RandomnessOracle,
        now: Optional[int] = None,
        payout_gateway: Optional[PayoutGateway] = None,
    ) -> str:
        """
        觸發開獎：OPEN -> CALCULATING，並向 Oracle 發出一次隨機數請求

        分三段，每段各自 commit：
        1. _begin_calculation：鎖定 Raffle，重新評估 upkeep，轉成 CALCULATING
        2. _send_request：呼叫 Oracle（不持有 transaction）。
           失敗時補償轉回 OPEN，再把異常往上拋
        3. _record_request：記錄 pending_request_id 與 RandomnessRequest

        第 1 段 commit 之後，重複觸發和 Oracle 回呼都看得到 CALCULATING。
        Oracle 在第 3 段之前就回呼時，答案先暫存（HELD），第 3 段取出後
        立刻開獎；沒有 payout_gateway 時留給 Oracle 重送回呼。

        返回：
            Oracle 指派的 request id

        異常：
            RaffleNotFound
            UpkeepNotNeededError: 條件不成立（帶 balance、參加人數、狀態）
            OracleRequestError: Oracle 請求失敗
            PayoutTransferFailedError: 暫存答案開獎後轉帳失敗
        """
        if now is None:
            now = current_timestamp()

        description = RaffleManager._begin_calculation(db, raffle_id, now)
        request_id = RaffleManager._send_request(db, raffle_id, oracle, description, reopen=True)
        held_words = RaffleManager._record_request(db, raffle_id, request_id, now)

        logger.info(f"Requested random words for raffle {raffle_id}: request {request_id}")
        RaffleManager._fulfill_held(db, raffle_id, request_id, held_words, payout_gateway, now)
        return request_id

    @staticmethod
    def rerequest_random_words(
        db: Session,
        raffle_id: str,
        oracle: RandomnessOracle,
        timeout_seconds: int,
        now: Optional[int] = None,
        payout_gateway: Optional[PayoutGateway] = None,
    ) -> str:
        """
        重新請求隨機數（待處理請求逾時的恢復路徑）

        舊請求標記為 SUPERSEDED，之後它的回呼會被 UnknownRequestError 拒絕。
        參加者與獎池都不動。timeout_seconds <= 0 表示停用。
        Oracle 呼叫失敗時 Raffle 維持 CALCULATING，逾時後可以再試。

        異常：
            RaffleNotFound
            NotCalculatingError: 沒有待處理請求
            RequestNotStale: 尚未逾時或功能停用
            OracleRequestError: Oracle 請求失敗
        """
        if now is None:
            now = current_timestamp()

        description, old_request_id, waited = RaffleManager._supersede_stale_request(
            db, raffle_id, timeout_seconds, now
        )
        new_request_id = RaffleManager._send_request(
            db, raffle_id, oracle, description, reopen=False
        )
        held_words = RaffleManager._record_request(
            db, raffle_id, new_request_id, now, replaces=old_request_id
        )

        logger.warning(
            f"Raffle {raffle_id}: request {old_request_id} stale after {waited}s, "
            f"re-requested as {new_request_id}"
        )
        RaffleManager._fulfill_held(db, raffle_id, new_request_id, held_words, payout_gateway, now)
        return new_request_id

    @staticmethod
    @transactional
    def _begin_calculation(db: Session, raffle_id: str, now: int) -> RandomWordsRequest:
        # 1. 取得並鎖定 Raffle
        raffle = with_raffle_lock(raffle_id, db).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)

        # 2. 重新評估 upkeep 條件
        participant_count = RaffleManager.get_participant_count(db, raffle_id)
        check = evaluate_upkeep(
            state=raffle.state,
            last_timestamp=raffle.last_timestamp,
            interval_seconds=raffle.interval_seconds,
            balance=raffle.balance,
            participant_count=participant_count,
            now=now,
        )
        if not check.upkeep_needed:
            raise UpkeepNotNeededError(raffle.balance, participant_count, raffle.state)

        # 3. Effects：鎖進 CALCULATING，請求送出中（還沒有 request id）
        RaffleStateMachine.transition(raffle, RaffleState.CALCULATING, db)
        raffle.pending_request_id = None
        raffle.requested_at = now

        logger.info(
            f"Raffle {raffle_id} closing round {raffle.round_number} "
            f"({participant_count} players, pot {raffle.balance})"
        )
        return RaffleManager._request_description(raffle)

    @staticmethod
    @transactional
    def _supersede_stale_request(
        db: Session,
        raffle_id: str,
        timeout_seconds: int,
        now: int,
    ) -> Tuple[RandomWordsRequest, Optional[str], int]:
        raffle = with_raffle_lock(raffle_id, db).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)
        if raffle.state != RaffleState.CALCULATING:
            raise NotCalculatingError(raffle.state)

        waited = now - (raffle.requested_at or now)
        if timeout_seconds <= 0 or waited < timeout_seconds:
            raise RequestNotStale(
                f"Request {raffle.pending_request_id} pending for {waited}s "
                f"(timeout {timeout_seconds}s)"
            )

        old_request_id = raffle.pending_request_id
        if old_request_id is not None:
            old_request = with_request_lock(raffle_id, old_request_id, db).first()
            if old_request:
                old_request.status = RequestStatus.SUPERSEDED

        raffle.pending_request_id = None
        raffle.requested_at = now
        return RaffleManager._request_description(raffle), old_request_id, waited

    @staticmethod
    def _request_description(raffle: Raffle) -> RandomWordsRequest:
        return RandomWordsRequest(
            consumer=raffle.id,
            key_hash=raffle.key_hash,
            subscription_id=raffle.subscription_id,
            request_confirmations=raffle.request_confirmations,
            callback_gas_limit=raffle.callback_gas_limit,
            num_words=raffle.num_words,
            native_payment=raffle.native_payment,
        )

    @staticmethod
    def _send_request(
        db: Session,
        raffle_id: str,
        oracle: RandomnessOracle,
        description: RandomWordsRequest,
        reopen: bool,
    ) -> str:
        try:
            return oracle.request_random_words(description)
        except Exception as e:
            logger.error(f"Randomness request for raffle {raffle_id} failed: {e}")
            RaffleManager._abort_request(db, raffle_id, reopen, str(e))
            raise

    @staticmethod
    @transactional
    def _abort_request(db: Session, raffle_id: str, reopen: bool, error: str) -> None:
        """Oracle 請求失敗的補償：reopen 時轉回 OPEN，丟棄送出期間暫存的答案"""
        raffle = with_raffle_lock(raffle_id, db).one()

        if reopen and raffle.state == RaffleState.CALCULATING and raffle.pending_request_id is None:
            RaffleStateMachine.transition(raffle, RaffleState.OPEN, db)
            raffle.requested_at = None

        RaffleManager._discard_held(db, raffle_id)
        db.add(EventLog(
            raffle_id=raffle_id,
            event_type="RANDOM_WORDS_REQUEST_FAILED",
            data={"error": error, "reopened": raffle.state == RaffleState.OPEN}
        ))

    @staticmethod
    @transactional
    def _record_request(
        db: Session,
        raffle_id: str,
        request_id: str,
        now: int,
        replaces: Optional[str] = None,
    ) -> Optional[List[int]]:
        """
        記錄 Oracle 指派的 request id

        返回：
            送出期間已經暫存的隨機數（沒有則為 None）
        """
        raffle = with_raffle_lock(raffle_id, db).one()
        if raffle.state != RaffleState.CALCULATING:
            raise NotCalculatingError(raffle.state)

        # 兩個請求同時送出時，後記錄的取代先記錄的
        if raffle.pending_request_id is not None:
            previous = with_request_lock(raffle_id, raffle.pending_request_id, db).first()
            if previous:
                previous.status = RequestStatus.SUPERSEDED

        raffle.pending_request_id = request_id
        raffle.requested_at = now

        held_words = None
        request = with_request_lock(raffle_id, request_id, db).filter(
            RandomnessRequest.status == RequestStatus.HELD
        ).first()
        if request:
            request.status = RequestStatus.PENDING
            request.requested_at = now
            held_words = [request.random_word]
        else:
            db.add(RandomnessRequest(
                raffle_id=raffle_id,
                request_id=request_id,
                status=RequestStatus.PENDING,
                round_number=raffle.round_number,
                key_hash=raffle.key_hash,
                subscription_id=raffle.subscription_id,
                request_confirmations=raffle.request_confirmations,
                callback_gas_limit=raffle.callback_gas_limit,
                num_words=raffle.num_words,
                native_payment=raffle.native_payment,
                requested_at=now,
            ))
        RaffleManager._discard_held(db, raffle_id, keep=request_id)

        db.add(EventLog(
            raffle_id=raffle_id,
            event_type="RANDOM_WORDS_REQUESTED",
            data={"request_id": request_id}
        ))
        if replaces is not None:
            db.add(EventLog(
                raffle_id=raffle_id,
                event_type="RANDOM_WORDS_REREQUESTED",
                data={"old_request_id": replaces, "request_id": request_id}
            ))
        return held_words

    @staticmethod
    def _discard_held(db: Session, raffle_id: str, keep: Optional[str] = None) -> None:
        db.flush()
        query = db.query(RandomnessRequest).filter(
            RandomnessRequest.raffle_id == raffle_id,
            RandomnessRequest.status == RequestStatus.HELD
        )
        if keep is not None:
            query = query.filter(RandomnessRequest.request_id != keep)
        query.update({RandomnessRequest.status: RequestStatus.SUPERSEDED}, synchronize_session=False)

    @staticmethod
    def _fulfill_held(
        db: Session,
        raffle_id: str,
        request_id: str,
        held_words: Optional[List[int]],
        payout_gateway: Optional[PayoutGateway],
        now: int,
    ) -> None:
        if held_words is None:
            return
        if payout_gateway is None:
            logger.warning(
                f"Raffle {raffle_id}: answer for request {request_id} arrived early, "
                f"waiting for the oracle to resend it"
            )
            return
        RaffleManager.fulfill_random_words(
            db, raffle_id, request_id, held_words, payout_gateway, now
        )

    # ============ Fulfillment ============

    @staticmethod
    def fulfill_random_words(
        db: Session,
        raffle_id: str,
        request_id: str,
        random_words: Sequence[int],
        payout_gateway: PayoutGateway,
        now: Optional[int] = None,
    ) -> Optional[Payout]:
        """
        Oracle 回呼：開獎並派彩

        分兩段：
        1. _resolve_round（一個 transaction）：選出得主、狀態回到 OPEN、
           清空參加者、重設回合時間、獎池移入 Payout，commit
        2. _execute_payout：把整個獎池轉給得主

        第 2 段失敗時回合狀態已經前進（不會重新開獎、不會自動重試），
        Payout 標記 FAILED 並拋出 PayoutTransferFailedError，需要外部處理。

        請求還在送往 Oracle 的途中（已是 CALCULATING、還沒有 request id）時，
        答案先暫存，等 request id 記錄下來再開獎。

        返回：
            SENT 狀態的 Payout；答案被暫存時為 None

        異常：
            RaffleNotFound
            NotCalculatingError: 狀態不是 CALCULATING
            UnknownRequestError: request id 不是待處理的請求
            InvalidRandomWordsError: 隨機數不合法
            PayoutTransferFailedError: 轉帳失敗
        """
        payout = RaffleManager._resolve_round(db, raffle_id, request_id, random_words, now)
        if payout is None:
            return None
        return RaffleManager._execute_payout(db, payout, payout_gateway)

    @staticmethod
    @transactional
    def _resolve_round(
        db: Session,
        raffle_id: str,
        request_id: str,
        random_words: Sequence[int],
        now: Optional[int] = None,
    ) -> Optional[Payout]:
        if now is None:
            now = current_timestamp()

        # 1. 取得並鎖定 Raffle，驗證回呼
        raffle = with_raffle_lock(raffle_id, db).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)
        if raffle.state != RaffleState.CALCULATING:
            raise NotCalculatingError(raffle.state)
        if raffle.pending_request_id is None:
            RaffleManager._hold_answer(db, raffle, request_id, random_words)
            return None
        if request_id != raffle.pending_request_id:
            raise UnknownRequestError(request_id, raffle.pending_request_id)

        # 2. 選出得主（依加入順序）
        entries = db.query(Entry).filter(
            Entry.raffle_id == raffle_id
        ).order_by(Entry.position).all()
        winner_index = select_winner_index(random_words, len(entries))
        winner = entries[winner_index].player
        amount = raffle.balance

        # 3. Effects：所有內部狀態在轉帳之前完成
        raffle.recent_winner = winner
        RaffleStateMachine.transition(raffle, RaffleState.OPEN, db)
        for entry in entries:
            db.delete(entry)
        raffle.last_timestamp = now
        raffle.balance = 0
        raffle.pending_request_id = None
        raffle.requested_at = None

        request = with_request_lock(raffle_id, request_id, db).first()
        if request:
            request.status = RequestStatus.FULFILLED
            request.random_word = random_words[0]
            request.fulfilled_at = now

        payout = Payout(
            raffle_id=raffle_id,
            round_number=raffle.round_number,
            request_id=request_id,
            winner=winner,
            winner_index=winner_index,
            amount=amount,
            status=PayoutStatus.PENDING,
        )
        db.add(payout)
        raffle.round_number += 1

        db.add(EventLog(
            raffle_id=raffle_id,
            event_type="WINNER_PICKED",
            data={"winner": winner, "winner_index": winner_index,
                  "amount": amount, "request_id": request_id}
        ))

        logger.info(
            f"Raffle {raffle_id} winner: {winner} (index {winner_index} of {len(entries)}), pot {amount}"
        )
        return payout

    @staticmethod
    def _hold_answer(
        db: Session,
        raffle: Raffle,
        request_id: str,
        random_words: Sequence[int],
    ) -> None:
        # 已經見過的 request id（被取代、已完成）不暫存
        known = db.query(RandomnessRequest).filter(
            RandomnessRequest.raffle_id == raffle.id,
            RandomnessRequest.request_id == request_id,
            RandomnessRequest.status != RequestStatus.HELD
        ).first()
        if known:
            raise UnknownRequestError(request_id, None)

        select_winner_index(random_words, RaffleManager.get_participant_count(db, raffle.id))

        request = with_request_lock(raffle.id, request_id, db).first()
        if request is None:
            request = RandomnessRequest(
                raffle_id=raffle.id,
                request_id=request_id,
                status=RequestStatus.HELD,
                round_number=raffle.round_number,
                key_hash=raffle.key_hash,
                subscription_id=raffle.subscription_id,
                request_confirmations=raffle.request_confirmations,
                callback_gas_limit=raffle.callback_gas_limit,
                num_words=raffle.num_words,
                native_payment=raffle.native_payment,
                requested_at=raffle.requested_at,
            )
            db.add(request)
        request.random_word = random_words[0]

        db.add(EventLog(
            raffle_id=raffle.id,
            event_type="RANDOM_WORDS_HELD",
            data={"request_id": request_id}
        ))
        logger.info(f"Raffle {raffle.id}: holding early answer for request {request_id}")

    @staticmethod
    def _execute_payout(db: Session, payout: Payout, payout_gateway: PayoutGateway) -> Payout:
        payout_id, winner, amount = payout.id, payout.winner, payout.amount

        try:
            delivered = payout_gateway.transfer(winner, amount)
        except Exception as e:
            logger.error(f"Payout of {amount} to {winner} raised: {e}", exc_info=True)
            RaffleManager._record_payout_result(db, payout_id, PayoutStatus.FAILED, str(e))
            raise PayoutTransferFailedError(winner, amount, str(e)) from e

        if not delivered:
            logger.error(f"Payout of {amount} to {winner} was rejected")
            RaffleManager._record_payout_result(
                db, payout_id, PayoutStatus.FAILED, "transfer rejected"
            )
            raise PayoutTransferFailedError(winner, amount, "transfer rejected")

        return RaffleManager._record_payout_result(db, payout_id, PayoutStatus.SENT)

    @staticmethod
    @transactional
    def _record_payout_result(
        db: Session,
        payout_id: int,
        status: PayoutStatus,
        error: Optional[str] = None,
    ) -> Payout:
        payout = db.query(Payout).filter(Payout.id == payout_id).one()
        payout.status = status
        payout.error = error

        db.add(EventLog(
            raffle_id=payout.raffle_id,
            event_type="PAYOUT_SENT" if status == PayoutStatus.SENT else "PAYOUT_FAILED",
            data={"winner": payout.winner, "amount": payout.amount, "error": error}
        ))
        return payout

    # ============ 查詢 ============

    @staticmethod
    def get_raffle_by_id(db: Session, raffle_id: str) -> Raffle:
        """
        透過 ID 取得 Raffle

        異常：
            RaffleNotFound: Raffle 不存在
        """
        raffle = db.query(Raffle).filter(Raffle.id == raffle_id).first()
        if not raffle:
            raise RaffleNotFound(raffle_id)
        return raffle

    @staticmethod
    def list_raffles(db: Session) -> List[Raffle]:
        return db.query(Raffle).order_by(Raffle.created_at).all()

    @staticmethod
    def get_entrance_fee(db: Session, raffle_id: str) -> int:
        return RaffleManager.get_raffle_by_id(db, raffle_id).entrance_fee

    @staticmethod
    def get_state(db: Session, raffle_id: str) -> RaffleState:
        return RaffleManager.get_raffle_by_id(db, raffle_id).state

    @staticmethod
    def get_last_timestamp(db: Session, raffle_id: str) -> int:
        return RaffleManager.get_raffle_by_id(db, raffle_id).last_timestamp

    @staticmethod
    def get_recent_winner(db: Session, raffle_id: str) -> Optional[str]:
        """上一回合的得主，還沒開過獎時為 None"""
        return RaffleManager.get_raffle_by_id(db, raffle_id).recent_winner

    @staticmethod
    def get_balance(db: Session, raffle_id: str) -> int:
        """本回合獎池（開獎後移入 Payout，歸零）"""
        return RaffleManager.get_raffle_by_id(db, raffle_id).balance

    @staticmethod
    def get_number_of_players(db: Session, raffle_id: str) -> int:
        RaffleManager.get_raffle_by_id(db, raffle_id)
        return RaffleManager.get_participant_count(db, raffle_id)

    @staticmethod
    def get_participant_count(db: Session, raffle_id: str) -> int:
        return db.query(Entry).filter(Entry.raffle_id == raffle_id).count()

    @staticmethod
    def get_players(db: Session, raffle_id: str) -> List[str]:
        """依加入順序回傳本回合所有參加者（重複報名會重複出現）"""
        RaffleManager.get_raffle_by_id(db, raffle_id)
        entries = db.query(Entry).filter(
            Entry.raffle_id == raffle_id
        ).order_by(Entry.position).all()
        return [entry.player for entry in entries]

    @staticmethod
    def get_player(db: Session, raffle_id: str, index: int) -> str:
        """
        取得第 index 個參加者

        異常：
            RaffleNotFound
            ParticipantNotFound: 索引超出範圍
        """
        RaffleManager.get_raffle_by_id(db, raffle_id)
        entry = db.query(Entry).filter(
            Entry.raffle_id == raffle_id,
            Entry.position == index
        ).first() if index >= 0 else None
        if not entry:
            raise ParticipantNotFound(index, RaffleManager.get_participant_count(db, raffle_id))
        return entry.player

    @staticmethod
    def get_events(db: Session, raffle_id: str, event_type: Optional[str] = None) -> List[EventLog]:
        RaffleManager.get_raffle_by_id(db, raffle_id)
        query = db.query(EventLog).filter(EventLog.raffle_id == raffle_id)
        if event_type:
            query = query.filter(EventLog.event_type == event_type)
        return query.order_by(EventLog.id).all()

    @staticmethod
    def get_payouts(db: Session, raffle_id: str) -> List[Payout]:
        RaffleManager.get_raffle_by_id(db, raffle_id)
        return db.query(Payout).filter(
            Payout.raffle_id == raffle_id
        ).order_by(Payout.id).all()
