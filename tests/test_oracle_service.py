import pytest
import requests

from models import RaffleState
from core.raffle_manager import RaffleManager
from core.exceptions import OracleRequestError
from services import oracle_service, payout_service
from services.oracle_service import (
    HttpRandomnessOracle,
    LocalRandomnessOracle,
    RandomWordsRequest,
)
from services.payout_service import HttpPayoutGateway, RecordingPayoutGateway
from tests.conftest import START, INTERVAL, FEE

REQUEST = RandomWordsRequest(
    consumer="raffle-1",
    key_hash="0x" + "00" * 32,
    subscription_id=1,
    request_confirmations=3,
    callback_gas_limit=500_000,
    num_words=1,
    native_payment=False,
)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.ok = status_code < 400

    def json(self):
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


def test_local_oracle_assigns_sequential_ids_and_delivers():
    delivered = []
    oracle = LocalRandomnessOracle(on_fulfill=lambda *args: delivered.append(args))

    first = oracle.request_random_words(REQUEST)
    second = oracle.request_random_words(REQUEST)
    assert (first, second) == ("1", "2")
    assert oracle.last_request_id() == "2"

    words = oracle.deliver(first)
    assert len(words) == 1
    assert 0 <= words[0] < 2**256
    assert delivered == [("raffle-1", "1", words)]
    assert list(oracle.pending) == ["2"]


def test_local_oracle_drops_requests_fulfilled_elsewhere():
    oracle = LocalRandomnessOracle(on_fulfill=lambda *args: None)
    first = oracle.request_random_words(REQUEST)
    second = oracle.request_random_words(REQUEST)

    oracle.mark_fulfilled(first)
    oracle.mark_fulfilled("99")

    assert list(oracle.pending) == [second]
    with pytest.raises(KeyError):
        oracle.deliver(first)


def test_local_oracle_rejects_unknown_delivery():
    oracle = LocalRandomnessOracle(on_fulfill=lambda *args: None)

    with pytest.raises(KeyError):
        oracle.deliver("99")


def test_http_oracle_posts_request_description(monkeypatch):
    calls = []

    def fake_post(url, json, timeout):
        calls.append((url, json, timeout))
        return FakeResponse({"request_id": 77})

    monkeypatch.setattr(oracle_service.requests, "post", fake_post)

    request_id = HttpRandomnessOracle("http://oracle.test/requests").request_random_words(REQUEST)

    assert request_id == "77"
    url, payload, _ = calls[0]
    assert url == "http://oracle.test/requests"
    assert payload["consumer"] == "raffle-1"
    assert payload["num_words"] == 1
    assert payload["native_payment"] is False


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({}, status_code=503),
        FakeResponse({"status": "queued"}),
        FakeResponse(["7"]),
        FakeResponse("7"),
    ],
)
def test_http_oracle_errors(monkeypatch, response):
    monkeypatch.setattr(oracle_service.requests, "post", lambda *a, **kw: response)

    with pytest.raises(OracleRequestError):
        HttpRandomnessOracle("http://oracle.test").request_random_words(REQUEST)


def test_unreachable_oracle_leaves_raffle_open(monkeypatch, db, raffle_id):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(oracle_service.requests, "post", refuse)
    RaffleManager.enter(db, raffle_id, "0xalice", FEE)

    with pytest.raises(OracleRequestError):
        RaffleManager.perform_upkeep(
            db, raffle_id, HttpRandomnessOracle("http://oracle.test"), now=START + INTERVAL
        )

    raffle = RaffleManager.get_raffle_by_id(db, raffle_id)
    assert raffle.state == RaffleState.OPEN
    assert raffle.pending_request_id is None


def test_recording_gateway_credits_winner():
    gateway = RecordingPayoutGateway()

    assert gateway.transfer("0xalice", 30)
    assert gateway.transfer("0xalice", 5)
    assert gateway.balances["0xalice"] == 35
    assert gateway.transfers == [("0xalice", 30), ("0xalice", 5)]


def test_http_payout_gateway(monkeypatch):
    responses = iter([
        FakeResponse({"success": True}),
        FakeResponse({"success": False}),
        FakeResponse({}, status_code=500),
    ])
    monkeypatch.setattr(payout_service.requests, "post", lambda *a, **kw: next(responses))
    gateway = HttpPayoutGateway("http://payouts.test")

    assert gateway.transfer("0xalice", 30) is True
    assert gateway.transfer("0xalice", 30) is False
    assert gateway.transfer("0xalice", 30) is False
