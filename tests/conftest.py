import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers the tables on Base.metadata)
from database import Base
from core.raffle_manager import RaffleManager
from core.exceptions import RaffleException
from services.oracle_service import LocalRandomnessOracle, RandomnessOracle
from services.payout_service import PayoutGateway, RecordingPayoutGateway

START = 1_000
INTERVAL = 30
FEE = 10
KEY_HASH = "0x" + "ab" * 32


class RejectingPayoutGateway(PayoutGateway):
    """Winner's receiving side refuses the funds."""

    def __init__(self):
        self.attempts = []

    def transfer(self, winner, amount):
        self.attempts.append((winner, amount))
        return False


class ExplodingPayoutGateway(PayoutGateway):
    def transfer(self, winner, amount):
        raise ConnectionError("payout endpoint unreachable")


class SilentOracle(RandomnessOracle):
    """Accepts requests and never answers."""

    def __init__(self):
        self.requests = []

    def request_random_words(self, request):
        self.requests.append(request)
        return f"silent-{len(self.requests)}"


class BrokenOracle(RandomnessOracle):
    def request_random_words(self, request):
        raise RuntimeError("coordinator down")


class EagerOracle(RandomnessOracle):
    """Calls the fulfill path from inside request_random_words, before returning the id."""

    def __init__(self, session_factory, gateway, word=1, answer_with=None):
        self.session_factory = session_factory
        self.gateway = gateway
        self.word = word
        self.answer_with = answer_with
        self.seen_states = []
        self.outcomes = []

    def request_random_words(self, request):
        request_id = f"eager-{len(self.outcomes) + 1}"
        session = self.session_factory()
        try:
            self.seen_states.append(RaffleManager.get_state(session, request.consumer))
            try:
                self.outcomes.append(RaffleManager.fulfill_random_words(
                    session, request.consumer, self.answer_with or request_id,
                    [self.word], self.gateway,
                ))
            except RaffleException as e:
                self.outcomes.append(e)
        finally:
            session.close()
        return request_id


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return RecordingPayoutGateway()


@pytest.fixture
def oracle(session_factory, gateway):
    def on_fulfill(raffle_id, request_id, random_words):
        session = session_factory()
        try:
            RaffleManager.fulfill_random_words(
                session, raffle_id, request_id, random_words, gateway
            )
        finally:
            session.close()

    return LocalRandomnessOracle(on_fulfill=on_fulfill)


@pytest.fixture
def raffle_id(db):
    raffle = RaffleManager.create_raffle(
        db,
        entrance_fee=FEE,
        interval_seconds=INTERVAL,
        key_hash=KEY_HASH,
        subscription_id=7,
        callback_gas_limit=500_000,
        request_confirmations=3,
        now=START,
    )
    return raffle.id


def enter_all(db, raffle_id, players, amount=FEE):
    for player in players:
        RaffleManager.enter(db, raffle_id, player, amount)
