import pytest

from core.exceptions import (
    ExternalCallFailed,
    GameNotFound,
    GamePaused,
    InvalidGameConfig,
    InvalidStateTransition,
    NotGameOwner,
)
from core.game_manager import GameManager
from core.player_ledger import PlayerLedger
from models import EventLog, Game
from tests.conftest import SEGMENT_LENGTH, START_TIME


def test_create_game_records_configuration(make_game):
    game = make_game(segment_count=6, segment_payment=10, early_withdrawal_fee=10)

    assert game.address.startswith("0x") and len(game.address) == 42
    assert game.first_segment_start == START_TIME
    assert game.segment_length == SEGMENT_LENGTH
    assert game.last_segment == 6
    assert game.segment_payment == 10
    assert game.early_withdrawal_fee == 10
    assert game.a_token_address == "aDAI"
    assert game.total_game_principal == 0
    assert game.total_game_interest == 0
    assert not game.redeemed
    assert not game.paused


@pytest.mark.parametrize("kwargs", [
    {"segment_count": 0},
    {"segment_payment": 0},
    {"early_withdrawal_fee": 101},
    {"early_withdrawal_fee": -1},
    {"owner": ""},
])
def test_create_game_rejects_invalid_config(db, make_game, kwargs):
    with pytest.raises(InvalidGameConfig):
        make_game(**kwargs)
    assert db.query(Game).count() == 0


def test_create_game_requires_known_reserve(db, host):
    with pytest.raises(ExternalCallFailed):
        GameManager.create_game(
            db, host, owner="owner", token_address="WBTC",
            segment_count=3, segment_length=60, segment_payment=1, early_withdrawal_fee=10
        )
    assert db.query(Game).count() == 0


def test_get_game_not_found(db):
    with pytest.raises(GameNotFound):
        GameManager.get_game(db, "missing")


def test_current_segment_and_completion(db, host, clock, make_game):
    game = make_game(segment_count=2)

    assert GameManager.get_current_segment(db, host, game.id) == 0
    clock.advance_segments(2)
    assert GameManager.get_current_segment(db, host, game.id) == 2
    assert not GameManager.is_game_completed(db, host, game.id)
    clock.advance_segments(1)
    assert GameManager.is_game_completed(db, host, game.id)


def test_only_owner_can_pause(db, make_game):
    game = make_game(owner="owner")

    with pytest.raises(NotGameOwner):
        GameManager.pause(db, game.id, "mallory")

    GameManager.pause(db, game.id, "owner")
    assert GameManager.get_game(db, game.id).paused


def test_pause_and_unpause_transitions(db, make_game):
    game = make_game()

    with pytest.raises(InvalidStateTransition):
        GameManager.unpause(db, game.id, "owner")

    GameManager.pause(db, game.id, "owner")
    with pytest.raises(InvalidStateTransition):
        GameManager.pause(db, game.id, "owner")

    GameManager.unpause(db, game.id, "owner")
    assert not GameManager.get_game(db, game.id).paused

    events = [e.event_type for e in db.query(EventLog).filter(EventLog.game_id == game.id).order_by(EventLog.id)]
    assert events == ["GameCreated", "Paused", "Unpaused"]


def test_paused_game_rejects_join(db, host, make_game, fund):
    game = make_game()
    fund(game, "alice")
    GameManager.pause(db, game.id, "owner")

    with pytest.raises(GamePaused):
        PlayerLedger.join(db, host, game.id, "alice")

    GameManager.unpause(db, game.id, "owner")
    PlayerLedger.join(db, host, game.id, "alice")


def test_roster_is_in_join_order(db, host, make_game, fund):
    game = make_game()
    fund(game, "carol", "alice", "bob")
    for participant in ["carol", "alice", "bob"]:
        PlayerLedger.join(db, host, game.id, participant)

    assert [p.address for p in GameManager.list_players(db, game.id)] == ["carol", "alice", "bob"]
    assert GameManager.get_segment_deposits(db, game.id) == {0: 30}
