"""
Payout Calculator：玩家提領

- withdraw：遊戲結束後拿回本金，winner 另外平分利息
- early_withdraw：遊戲中途退出，扣手續費後拿回本金，手續費留給 winner

withdrawn 是單向旗標，一定在轉帳之前設好並 flush
"""
from sqlalchemy.orm import Session
import logging

from models import SegmentDeposit, Winner
from core.game_manager import ensure_not_paused
from core.host import GameHost
from core.locks import serialized, with_game_lock, with_player_lock
from core.redemption_engine import RedemptionEngine
from core.exceptions import (
    ExternalCallFailed,
    GameAlreadyCompleted,
    GameNotCompleted,
    GameNotFound,
    PlayerAlreadyWithdrawn,
    PlayerNotFound,
)
from services.event_service import record_event
from services.payout_service import calculate_early_withdrawal_amount, calculate_payout
from services.segment_service import GameClock, is_game_completed, is_winning_segment
from database import transactional

logger = logging.getLogger(__name__)


class PayoutCalculator:

    @staticmethod
    @serialized
    @transactional
    def withdraw(db: Session, host: GameHost, game_id: str, participant: str) -> int:
        """
        遊戲結束後提領（暫停中也可以）

        前置條件：
        1. 玩家存在且尚未提領
        2. 遊戲已結束

        流程：
        1. withdrawn = True
        2. 還沒贖回就先贖回（第一個提領者觸發）
        3. payout = 本金 + （winner 才有）floor(利息 / winner 人數)
        4. 轉帳；失敗則連同 withdrawn 與贖回一起回滾

        返回：
            轉給玩家的金額
        """
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)

        player = with_player_lock(game_id, participant, db).first()
        if not player:
            raise PlayerNotFound(participant)
        if player.withdrawn:
            raise PlayerAlreadyWithdrawn(participant)
        if not GameClock(game, host.clock).is_completed():
            raise GameNotCompleted(f"Game {game_id} is not completed")

        player.withdrawn = True
        db.flush()

        if not game.redeemed:
            RedemptionEngine.redeem(db, host, game)

        winner_count = db.query(Winner).filter(Winner.game_id == game_id).count()
        payout = calculate_payout(
            player.amount_paid,
            is_winning_segment(player.most_recent_segment_paid, game.last_segment),
            game.total_game_interest,
            winner_count
        )

        record_event(db, game.id, "Withdrawal", {"participant": participant, "amount": payout})
        db.flush()

        token = host.token_at(game.token_address)
        if not token.transfer(game.address, participant, payout):
            raise ExternalCallFailed("token.transfer", f"could not pay {payout} to {participant}")

        logger.info(f"Player {participant} withdrew {payout} from game {game_id}")
        return payout

    @staticmethod
    @serialized
    @transactional
    def early_withdraw(db: Session, host: GameHost, game_id: str, participant: str) -> int:
        """
        提前退出

        前置條件：
        1. Game 未暫停、尚未結束
        2. 玩家存在且尚未提領

        效果：
        - withdraw_amount = amount_paid - floor(amount_paid * fee / 100)
        - 本金只扣 withdraw_amount，手續費仍算在本金裡（留給 winner）
        - 目前 segment 的 bucket 還夠時才扣減；不夠或已 sweep 則不動
        - 合約閒置餘額不足時，才向借貸池提領差額
        - player.amount_paid 不變，玩家已標記為退出，之後不會再被讀取

        返回：
            轉給玩家的金額
        """
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        ensure_not_paused(game)

        segment = GameClock(game, host.clock).current_segment()
        if is_game_completed(segment, game.last_segment):
            raise GameAlreadyCompleted(f"Game {game_id} is already completed")

        player = with_player_lock(game_id, participant, db).first()
        if not player:
            raise PlayerNotFound(participant)
        if player.withdrawn:
            raise PlayerAlreadyWithdrawn(participant)

        player.withdrawn = True
        withdraw_amount = calculate_early_withdrawal_amount(player.amount_paid, game.early_withdrawal_fee)
        game.total_game_principal = game.total_game_principal - withdraw_amount

        bucket = db.get(SegmentDeposit, (game.id, segment))
        if bucket is not None and bucket.amount >= withdraw_amount:
            bucket.amount = bucket.amount - withdraw_amount
        elif bucket is not None and bucket.amount > 0:
            logger.warning(
                f"Segment {segment} bucket of game {game_id} holds {bucket.amount}, "
                f"below {withdraw_amount}; bucket left unchanged"
            )

        record_event(db, game.id, "EarlyWithdrawal", {
            "participant": participant,
            "amount": withdraw_amount,
        })
        db.flush()

        token = host.token_at(game.token_address)
        idle_balance = token.balance_of(game.address)
        if idle_balance < withdraw_amount:
            host.lending_pool.withdraw(
                game.token_address,
                withdraw_amount - idle_balance,
                game.address,
                sender=game.address
            )

        if not token.transfer(game.address, participant, withdraw_amount):
            raise ExternalCallFailed(
                "token.transfer",
                f"could not pay {withdraw_amount} to {participant}"
            )

        logger.info(
            f"Player {participant} left game {game_id} early at segment {segment}, "
            f"receiving {withdraw_amount} of {player.amount_paid}"
        )
        return withdraw_amount
