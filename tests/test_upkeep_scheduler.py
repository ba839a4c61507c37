import asyncio

from models import RaffleState, PayoutStatus
from core.raffle_manager import RaffleManager
from core.upkeep_scheduler import UpkeepScheduler
from tests.conftest import START, INTERVAL, FEE, SilentOracle, enter_all

DUE = START + INTERVAL


def test_tick_triggers_due_raffle_and_next_tick_delivers(db, session_factory, raffle_id, oracle, gateway):
    enter_all(db, raffle_id, ["0xalice", "0xbob"])
    scheduler = UpkeepScheduler(session_factory, oracle, poll_seconds=1)

    issued = scheduler.run_once(now=DUE)

    assert len(issued) == 1
    db.expire_all()
    assert RaffleManager.get_raffle_by_id(db, raffle_id).state == RaffleState.CALCULATING

    assert scheduler.run_once(now=DUE + 1) == []

    db.expire_all()
    raffle = RaffleManager.get_raffle_by_id(db, raffle_id)
    assert raffle.state == RaffleState.OPEN
    assert raffle.recent_winner in ("0xalice", "0xbob")
    assert RaffleManager.get_payouts(db, raffle_id)[0].status == PayoutStatus.SENT
    assert sum(gateway.balances.values()) == 2 * FEE


def test_tick_skips_raffles_that_are_not_due(db, session_factory, raffle_id, oracle):
    RaffleManager.enter(db, raffle_id, "0xalice", FEE)
    empty = RaffleManager.create_raffle(
        db, entrance_fee=FEE, interval_seconds=INTERVAL, key_hash="0x00",
        subscription_id=1, callback_gas_limit=100_000, request_confirmations=3,
        now=START,
    )
    scheduler = UpkeepScheduler(session_factory, oracle, poll_seconds=1)

    assert scheduler.run_once(now=DUE - 1) == []
    issued = scheduler.run_once(now=DUE)

    assert len(issued) == 1
    db.expire_all()
    assert RaffleManager.get_raffle_by_id(db, empty.id).state == RaffleState.OPEN


def test_tick_rerequests_stale_request_when_timeout_enabled(db, session_factory, raffle_id):
    silent = SilentOracle()
    RaffleManager.enter(db, raffle_id, "0xalice", FEE)
    scheduler = UpkeepScheduler(session_factory, silent, poll_seconds=1, request_timeout_seconds=60)

    first = scheduler.run_once(now=DUE)
    assert scheduler.run_once(now=DUE + 59) == []
    second = scheduler.run_once(now=DUE + 60)

    assert len(first) == 1 and len(second) == 1
    db.expire_all()
    assert RaffleManager.get_raffle_by_id(db, raffle_id).pending_request_id == second[0]


def test_tick_leaves_stuck_request_alone_without_timeout(db, session_factory, raffle_id):
    silent = SilentOracle()
    RaffleManager.enter(db, raffle_id, "0xalice", FEE)
    scheduler = UpkeepScheduler(session_factory, silent, poll_seconds=1)

    scheduler.run_once(now=DUE)
    assert scheduler.run_once(now=DUE + 10_000) == []
    assert len(silent.requests) == 1


def test_start_and_stop(session_factory):
    scheduler = UpkeepScheduler(session_factory, SilentOracle(), poll_seconds=0.01)

    async def scenario():
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

    asyncio.run(scenario())
    assert scheduler._task is None
