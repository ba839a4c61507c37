"""
Upkeep 排程：取代外部 automation 網路，定期檢查並觸發開獎

每個 tick：
1. LocalRandomnessOracle 的待處理請求在這裡回覆（模擬 Oracle 延遲一個 tick）
2. OPEN 的 Raffle：check_upkeep 成立就 perform_upkeep
3. CALCULATING 的 Raffle：啟用逾時時，過期的請求重新發出

單一 Raffle 的失敗只記 log，不影響其他 Raffle 或下一個 tick。
"""
import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from models import RaffleState
from core.raffle_manager import RaffleManager
from core.exceptions import RaffleException, RequestNotStale
from services.oracle_service import RandomnessOracle, LocalRandomnessOracle
from services.payout_service import PayoutGateway

logger = logging.getLogger(__name__)


class UpkeepScheduler:
    """定期輪詢所有 Raffle 的 upkeep"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        oracle: RandomnessOracle,
        poll_seconds: float,
        request_timeout_seconds: int = 0,
        payout_gateway: Optional[PayoutGateway] = None,
    ):
        self.session_factory = session_factory
        self.oracle = oracle
        self.poll_seconds = poll_seconds
        self.request_timeout_seconds = request_timeout_seconds
        self.payout_gateway = payout_gateway
        self._task: Optional[asyncio.Task] = None

    def run_once(self, now: Optional[int] = None) -> List[str]:
        """
        執行一個 tick

        返回：
            這個 tick 發出的 request id 列表
        """
        self._deliver_local_requests()

        issued = []
        db = self.session_factory()
        try:
            for raffle in RaffleManager.list_raffles(db):
                raffle_id = raffle.id
                try:
                    if raffle.state == RaffleState.OPEN:
                        if RaffleManager.check_upkeep(db, raffle_id, now).upkeep_needed:
                            issued.append(RaffleManager.perform_upkeep(
                                db, raffle_id, self.oracle, now, self.payout_gateway
                            ))
                    elif self.request_timeout_seconds > 0:
                        issued.append(RaffleManager.rerequest_random_words(
                            db, raffle_id, self.oracle, self.request_timeout_seconds, now,
                            self.payout_gateway,
                        ))
                except RequestNotStale:
                    continue
                except RaffleException as e:
                    logger.error(f"Upkeep failed for raffle {raffle_id}: {e}")
        finally:
            db.close()
        return issued

    def _deliver_local_requests(self) -> None:
        if not isinstance(self.oracle, LocalRandomnessOracle):
            return
        for request_id in list(self.oracle.pending):
            try:
                self.oracle.deliver(request_id)
            except RaffleException as e:
                logger.error(f"Fulfillment of request {request_id} failed: {e}")

    async def _loop(self) -> None:
        logger.info(f"Upkeep scheduler started (every {self.poll_seconds}s)")
        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                logger.error(f"Upkeep tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.poll_seconds)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Upkeep scheduler stopped")
