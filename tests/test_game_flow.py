"""
完整遊戲流程：5 名玩家，1 人在 segment 1 提前退出，其餘 4 人付完所有 segment
"""
import pytest

from core.exceptions import GameAlreadyCompleted, PlayerAlreadyWithdrawn
from core.game_manager import GameManager
from core.payout_calculator import PayoutCalculator
from core.player_ledger import PlayerLedger
from core.redemption_engine import RedemptionEngine
from core.segment_pool import SegmentPool
from models import EventLog
from services.history_service import get_player_payment_history

PLAYERS = ["p1", "p2", "p3", "p4", "p5"]
LOSER = PLAYERS[0]
WINNERS = PLAYERS[1:]


def _run_game(db, host, clock, game, interest):
    for participant in PLAYERS:
        PlayerLedger.join(db, host, game.id, participant)

    for segment in range(1, game.last_segment):
        clock.advance_segments(1)
        SegmentPool.deposit_into_external_pool(db, host, game.id)
        if segment == 1:
            assert PayoutCalculator.early_withdraw(db, host, game.id, LOSER) == 9
        for participant in WINNERS:
            PlayerLedger.make_deposit(db, host, game.id, participant)

    # the last paid segment earns yield for one more segment before the game ends
    clock.advance_segments(1)
    SegmentPool.deposit_into_external_pool(db, host, game.id)
    host.lending_pool.accrue_yield(game.address, interest)
    db.commit()
    clock.advance_segments(1)


@pytest.mark.parametrize("segment_count", [5, 6])
def test_winners_share_interest_and_loser_pays_fee(db, host, clock, make_game, fund, token, segment_count):
    interest = 1003
    game = make_game(segment_count=segment_count, segment_payment=10, early_withdrawal_fee=10)
    fund(game, *PLAYERS)
    starting_balance = 10 * (segment_count + 1)

    _run_game(db, host, clock, game, interest)

    assert GameManager.is_game_completed(db, host, game.id)
    assert GameManager.list_winners(db, game.id) == WINNERS

    payments_per_winner = segment_count
    principal = len(WINNERS) * 10 * payments_per_winner + (10 - 9)
    game = GameManager.get_game(db, game.id)
    assert game.total_game_principal == principal

    result = RedemptionEngine.redeem_from_external_pool(db, host, game.id)
    assert result.total_principal == principal
    assert result.total_interest == interest
    assert result.total_amount == principal + interest

    share = interest // len(WINNERS)
    for participant in WINNERS:
        payout = PayoutCalculator.withdraw(db, host, game.id, participant)
        assert payout == 10 * payments_per_winner + share
        assert token.balance_of(participant) == starting_balance - 10 * payments_per_winner + payout

    assert token.balance_of(LOSER) == starting_balance - 10 + 9
    # fee (1 unit) plus the interest remainder stay in the contract
    assert token.balance_of(game.address) == 1 + interest - share * len(WINNERS)

    with pytest.raises(PlayerAlreadyWithdrawn):
        PayoutCalculator.withdraw(db, host, game.id, LOSER)
    with pytest.raises(GameAlreadyCompleted):
        PayoutCalculator.early_withdraw(db, host, game.id, LOSER)


def test_five_segment_game_pays_fifty_plus_quarter_of_interest(db, host, clock, make_game, fund):
    game = make_game(segment_count=5)
    fund(game, *PLAYERS)
    _run_game(db, host, clock, game, interest=1003)

    for participant in WINNERS:
        assert PayoutCalculator.withdraw(db, host, game.id, participant) == 10 * 5 + 1003 // 4


def test_early_withdrawn_player_cannot_exit_again_mid_game(db, host, clock, make_game, fund):
    game = make_game(segment_count=5)
    fund(game, *PLAYERS)
    for participant in PLAYERS:
        PlayerLedger.join(db, host, game.id, participant)
    clock.advance_segments(1)
    PayoutCalculator.early_withdraw(db, host, game.id, LOSER)

    with pytest.raises(PlayerAlreadyWithdrawn):
        PayoutCalculator.early_withdraw(db, host, game.id, LOSER)
    with pytest.raises(PlayerAlreadyWithdrawn):
        PlayerLedger.make_deposit(db, host, game.id, LOSER)


def test_event_log_and_payment_history(db, host, clock, make_game, fund):
    game = make_game(segment_count=5)
    fund(game, *PLAYERS)
    _run_game(db, host, clock, game, interest=1003)
    PayoutCalculator.withdraw(db, host, game.id, "p2")

    history = get_player_payment_history(game.id, "p2", db)
    assert [entry["segment"] for entry in history if entry["kind"] == "payment"] == [0, 1, 2, 3, 4]
    assert history[-1] == {"kind": "withdrawal", "segment": None, "amount": 50 + 250}

    loser_history = get_player_payment_history(game.id, LOSER, db)
    assert loser_history == [
        {"kind": "payment", "segment": 0, "amount": 10},
        {"kind": "early_withdrawal", "segment": None, "amount": 9},
    ]

    sweeps = db.query(EventLog).filter(
        EventLog.game_id == game.id,
        EventLog.event_type == "FundsDepositedIntoExternalPool"
    ).order_by(EventLog.id).all()
    assert [e.data["amount"] for e in sweeps] == [50, 40, 40, 40, 40]
