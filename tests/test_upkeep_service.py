import pytest

from models import RaffleState
from services.round_clock import interval_elapsed, seconds_elapsed
from services.upkeep_service import evaluate_upkeep
from services.winner_service import select_winner_index
from core.exceptions import InvalidRandomWordsError

GOOD = dict(
    state=RaffleState.OPEN,
    last_timestamp=100,
    interval_seconds=30,
    balance=10,
    participant_count=1,
    now=130,
)


def test_all_conditions_hold():
    check = evaluate_upkeep(**GOOD)

    assert check.time_passed and check.is_open and check.has_balance and check.has_players
    assert check.upkeep_needed


@pytest.mark.parametrize(
    "override,flag",
    [
        ({"now": 129}, "time_passed"),
        ({"state": RaffleState.CALCULATING}, "is_open"),
        ({"balance": 0}, "has_balance"),
        ({"participant_count": 0}, "has_players"),
    ],
)
def test_any_single_false_condition_blocks_upkeep(override, flag):
    check = evaluate_upkeep(**{**GOOD, **override})

    assert getattr(check, flag) is False
    assert check.upkeep_needed is False


def test_interval_boundary_is_inclusive():
    assert interval_elapsed(100, 30, now=130)
    assert not interval_elapsed(100, 30, now=129)
    assert interval_elapsed(100, 0, now=100)
    assert seconds_elapsed(100, now=175) == 75


def test_winner_index_wraps_modulo_participants():
    assert select_winner_index([7], 3) == 1
    assert select_winner_index([3], 3) == 0
    assert select_winner_index([2**256 - 2], 5) == (2**256 - 2) % 5


def test_winner_index_is_deterministic():
    words = [123456789012345678901234567890, 1, 2]
    assert select_winner_index(words, 7) == select_winner_index(words, 7)


@pytest.mark.parametrize("words", [[], [-1], [2**256]])
def test_invalid_random_words(words):
    with pytest.raises(InvalidRandomWordsError):
        select_winner_index(words, 3)


def test_winner_requires_participants():
    with pytest.raises(ValueError):
        select_winner_index([1], 0)
