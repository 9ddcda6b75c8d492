"""
外部協作者在呼叫途中回呼 engine：回呼看到的必須是已更新的帳本
"""
from core.exceptions import (
    AlreadyRedeemed,
    NothingToDeposit,
    PlayerAlreadyJoined,
    PlayerAlreadyWithdrawn,
)
from core.game_manager import GameManager
from core.payout_calculator import PayoutCalculator
from core.player_ledger import PlayerLedger
from core.redemption_engine import RedemptionEngine
from core.segment_pool import SegmentPool
from models import Player
from tests.conftest import HostilePool, HostileToken


def test_reentrant_join_sees_existing_player(db, hostile_host, make_game, fund, token):
    game = make_game()
    fund(game, "alice")
    evil = HostileToken(token)
    evil_host = hostile_host(token=evil)
    evil.on_call = lambda: PlayerLedger.join(db, evil_host, game.id, "alice")

    PlayerLedger.join(db, evil_host, game.id, "alice")

    assert len(evil.reentry_errors) == 1
    assert isinstance(evil.reentry_errors[0], PlayerAlreadyJoined)
    assert db.query(Player).count() == 1
    assert GameManager.get_game(db, game.id).total_game_principal == 10
    assert token.balance_of("alice") == 60


def test_reentrant_deposit_sees_paid_segment(db, host, hostile_host, clock, make_game, fund, token):
    game = make_game()
    fund(game, "alice")
    PlayerLedger.join(db, host, game.id, "alice")
    clock.advance_segments(1)
    evil = HostileToken(token)
    evil_host = hostile_host(token=evil)
    evil.on_call = lambda: PlayerLedger.make_deposit(db, evil_host, game.id, "alice")

    PlayerLedger.make_deposit(db, evil_host, game.id, "alice")

    assert [type(e).__name__ for e in evil.reentry_errors] == ["SegmentAlreadyPaid"]
    assert GameManager.get_player(db, game.id, "alice").amount_paid == 20
    assert GameManager.get_game(db, game.id).total_game_principal == 20


def test_reentrant_sweep_finds_empty_bucket(db, host, hostile_host, clock, make_game, fund, a_token):
    game = make_game()
    fund(game, "alice")
    PlayerLedger.join(db, host, game.id, "alice")
    clock.advance_segments(1)
    evil = HostilePool(host.lending_pool)
    evil_host = hostile_host(pool=evil)
    evil.on_call = lambda: SegmentPool.deposit_into_external_pool(db, evil_host, game.id)

    assert SegmentPool.deposit_into_external_pool(db, evil_host, game.id) == 10

    assert len(evil.reentry_errors) == 1
    assert isinstance(evil.reentry_errors[0], NothingToDeposit)
    assert a_token.balance_of(game.address) == 10


def test_reentrant_redemption_is_rejected(db, host, hostile_host, clock, make_game, fund, token):
    game = make_game(segment_count=1)
    fund(game, "alice")
    PlayerLedger.join(db, host, game.id, "alice")
    clock.advance_segments(1)
    SegmentPool.deposit_into_external_pool(db, host, game.id)
    clock.advance_segments(1)
    evil = HostilePool(host.lending_pool)
    evil_host = hostile_host(pool=evil)
    evil.on_call = lambda: RedemptionEngine.redeem_from_external_pool(db, evil_host, game.id)

    result = RedemptionEngine.redeem_from_external_pool(db, evil_host, game.id)

    assert len(evil.reentry_errors) == 1
    assert isinstance(evil.reentry_errors[0], AlreadyRedeemed)
    assert result.total_amount == 10
    assert token.balance_of(game.address) == 10


def test_reentrant_withdraw_pays_once(db, host, hostile_host, clock, make_game, fund, token):
    game = make_game(segment_count=1)
    fund(game, "alice", "bob")
    PlayerLedger.join(db, host, game.id, "alice")
    PlayerLedger.join(db, host, game.id, "bob")
    clock.advance_segments(2)
    evil = HostileToken(token)
    evil_host = hostile_host(token=evil)
    evil.on_call = lambda: PayoutCalculator.withdraw(db, evil_host, game.id, "alice")

    assert PayoutCalculator.withdraw(db, evil_host, game.id, "alice") == 10

    assert len(evil.reentry_errors) == 1
    assert isinstance(evil.reentry_errors[0], PlayerAlreadyWithdrawn)
    assert token.balance_of("alice") == 20
    assert token.balance_of(game.address) == 10


def test_reentrant_early_withdraw_pays_once(db, host, hostile_host, make_game, fund, token):
    game = make_game()
    fund(game, "alice", "bob")
    PlayerLedger.join(db, host, game.id, "alice")
    PlayerLedger.join(db, host, game.id, "bob")
    evil = HostileToken(token)
    evil_host = hostile_host(token=evil)
    evil.on_call = lambda: PayoutCalculator.early_withdraw(db, evil_host, game.id, "alice")

    assert PayoutCalculator.early_withdraw(db, evil_host, game.id, "alice") == 9

    assert len(evil.reentry_errors) == 1
    assert isinstance(evil.reentry_errors[0], PlayerAlreadyWithdrawn)
    assert token.balance_of(game.address) == 11
    assert GameManager.get_game(db, game.id).total_game_principal == 11


def test_failed_reentrant_call_keeps_outer_effects(db, host, hostile_host, make_game, fund, token):
    """回呼裡的失敗只回滾到 SAVEPOINT，外層的加入照常完成"""
    game = make_game()
    fund(game, "alice")
    evil = HostileToken(token)
    evil_host = hostile_host(token=evil)
    # bob never approved the game, so his nested join fails after alice's bookkeeping was flushed
    evil.on_call = lambda: PlayerLedger.join(db, evil_host, game.id, "bob")

    PlayerLedger.join(db, evil_host, game.id, "alice")

    assert [type(e).__name__ for e in evil.reentry_errors] == ["InsufficientAllowance"]
    assert [p.address for p in GameManager.list_players(db, game.id)] == ["alice"]
    assert GameManager.get_game(db, game.id).total_game_principal == 10


def test_successful_reentrant_call_returns_its_result(db, hostile_host, make_game, fund, token):
    game = make_game()
    fund(game, "alice", "bob")
    evil = HostileToken(token)
    evil_host = hostile_host(token=evil)
    evil.on_call = lambda: PlayerLedger.join(db, evil_host, game.id, "bob")

    PlayerLedger.join(db, evil_host, game.id, "alice")

    assert evil.reentry_errors == []
    assert [player.address for player in evil.reentry_results] == ["bob"]
    assert [p.address for p in GameManager.list_players(db, game.id)] == ["alice", "bob"]
    assert GameManager.get_game(db, game.id).total_game_principal == 20
    assert token.balance_of(game.address) == 20
