"""
外部協作者的組裝：Randomness Oracle 與 Payout Gateway

依照 Settings 決定實作：
- oracle_url 有值：HttpRandomnessOracle，否則 LocalRandomnessOracle
- payout_url 有值：HttpPayoutGateway，否則 RecordingPayoutGateway

兩者都是 process-wide singleton（lru_cache），API 和排程共用同一個實例。
"""
from functools import lru_cache
from typing import List
import logging

from database import SessionLocal, get_settings
from core.raffle_manager import RaffleManager
from services.oracle_service import (
    RandomnessOracle,
    LocalRandomnessOracle,
    HttpRandomnessOracle,
)
from services.payout_service import (
    PayoutGateway,
    RecordingPayoutGateway,
    HttpPayoutGateway,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_payout_gateway() -> PayoutGateway:
    settings = get_settings()
    if settings.payout_url:
        logger.info(f"Using HTTP payout gateway at {settings.payout_url}")
        return HttpPayoutGateway(settings.payout_url)
    return RecordingPayoutGateway()


@lru_cache()
def get_oracle() -> RandomnessOracle:
    settings = get_settings()
    if settings.oracle_url:
        logger.info(f"Using HTTP randomness oracle at {settings.oracle_url}")
        return HttpRandomnessOracle(settings.oracle_url)
    return LocalRandomnessOracle(on_fulfill=fulfill_with_new_session)


def fulfill_with_new_session(raffle_id: str, request_id: str, random_words: List[int]) -> None:
    """LocalRandomnessOracle 的回呼：開一個獨立的 session 執行開獎"""
    db = SessionLocal()
    try:
        RaffleManager.fulfill_random_words(
            db, raffle_id, request_id, random_words, get_payout_gateway()
        )
    finally:
        db.close()
