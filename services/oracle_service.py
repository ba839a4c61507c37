"""
隨機數 Oracle 客戶端

Oracle 是受信任的外部協作者：Raffle 送出請求描述，立即拿到一個 request id，
之後 Oracle 透過 RaffleManager.fulfill_random_words 回呼隨機數。

實作：
- LocalRandomnessOracle：行程內的協調者，請求先排隊，呼叫 deliver() 才回覆
  （請求與回呼是兩個獨立的操作）
- HttpRandomnessOracle：把請求描述 POST 給外部協調者，由它呼叫 fulfill endpoint
"""
import itertools
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional

import requests

from core.exceptions import OracleRequestError

logger = logging.getLogger(__name__)

FulfillCallback = Callable[[str, str, List[int]], None]


@dataclass(frozen=True)
class RandomWordsRequest:
    consumer: str
    key_hash: str
    subscription_id: int
    request_confirmations: int
    callback_gas_limit: int
    num_words: int
    native_payment: bool

    def to_payload(self) -> dict:
        return asdict(self)


class RandomnessOracle(ABC):
    @abstractmethod
    def request_random_words(self, request: RandomWordsRequest) -> str:
        """送出請求，返回 Oracle 指派的 request id"""

    def mark_fulfilled(self, request_id: str) -> None:
        """回呼已經由其他路徑（例如 fulfill endpoint）送達"""


class LocalRandomnessOracle(RandomnessOracle):
    """行程內的 Oracle，呼叫 deliver() 才回覆"""

    def __init__(self, on_fulfill: Optional[FulfillCallback] = None):
        self.on_fulfill = on_fulfill
        self.pending: Dict[str, RandomWordsRequest] = {}
        self.issued: List[str] = []
        self._ids = itertools.count(1)

    def request_random_words(self, request: RandomWordsRequest) -> str:
        request_id = str(next(self._ids))
        self.pending[request_id] = request
        self.issued.append(request_id)
        logger.info(
            f"Queued randomness request {request_id} for raffle {request.consumer} "
            f"({request.num_words} word(s), {request.request_confirmations} confirmations)"
        )
        return request_id

    def mark_fulfilled(self, request_id: str) -> None:
        if self.pending.pop(request_id, None) is not None:
            logger.info(f"Request {request_id} fulfilled externally, dropped from queue")

    def last_request_id(self) -> Optional[str]:
        return self.issued[-1] if self.issued else None

    def deliver(self, request_id: str, random_words: Optional[List[int]] = None) -> List[int]:
        """
        回覆一個排隊中的請求（呼叫 fulfill callback）

        參數：
            request_id: 要回覆的請求
            random_words: 指定的隨機數；省略時用 secrets 產生 num_words 個 256 位元數

        返回：
            送出的隨機數

        異常：
            KeyError: 沒有這個待處理請求
            RuntimeError: 沒有設定 fulfill callback
        """
        request = self.pending.pop(request_id, None)
        if request is None:
            raise KeyError(f"No pending randomness request {request_id}")
        if random_words is None:
            random_words = [secrets.randbits(256) for _ in range(request.num_words)]
        if self.on_fulfill is None:
            raise RuntimeError("LocalRandomnessOracle has no fulfill callback")

        logger.info(f"Delivering random words for request {request_id}")
        self.on_fulfill(request.consumer, request_id, random_words)
        return random_words


class HttpRandomnessOracle(RandomnessOracle):
    def __init__(self, url: str, timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def request_random_words(self, request: RandomWordsRequest) -> str:
        try:
            resp = requests.post(self.url, json=request.to_payload(), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise OracleRequestError(f"Oracle request to {self.url} failed: {e}") from e

        if not isinstance(data, dict) or data.get("request_id") is None:
            raise OracleRequestError(f"Oracle response has no request_id: {data}")
        return str(data["request_id"])
