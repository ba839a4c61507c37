"""
派彩閘道：把獎池轉給得主

transfer() 返回 True 表示轉帳成功。返回 False 或拋出異常都算派彩失敗，
由呼叫者轉成 PayoutTransferFailedError。
"""
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Tuple

import requests

logger = logging.getLogger(__name__)


class PayoutGateway(ABC):
    @abstractmethod
    def transfer(self, winner: str, amount: int) -> bool:
        ...


class RecordingPayoutGateway(PayoutGateway):
    """記憶體內的帳本，直接加到得主餘額"""

    def __init__(self):
        self.balances: Dict[str, int] = defaultdict(int)
        self.transfers: List[Tuple[str, int]] = []

    def transfer(self, winner: str, amount: int) -> bool:
        self.balances[winner] += amount
        self.transfers.append((winner, amount))
        logger.info(f"Credited {amount} to {winner}")
        return True


class HttpPayoutGateway(PayoutGateway):
    def __init__(self, url: str, timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def transfer(self, winner: str, amount: int) -> bool:
        resp = requests.post(
            self.url,
            json={"to": winner, "amount": str(amount)},
            timeout=self.timeout,
        )
        if not resp.ok:
            logger.error(f"Payout endpoint returned {resp.status_code} for {winner}")
            return False
        data = resp.json()
        return bool(data.get("success", True))
