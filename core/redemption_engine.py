"""
Redemption Engine：遊戲結束後，一次性從外部協定贖回所有資金

redeemed 是單向旗標（False -> True），在呼叫借貸池之前就設好並 flush，
所以重入或重試都只會得到 AlreadyRedeemed。

兩個觸發點：
- redeem_from_external_pool：任何人都可以明確呼叫
- PayoutCalculator.withdraw：第一個提領的玩家順便觸發
"""
from dataclasses import dataclass
from typing import List

from sqlalchemy.orm import Session
import logging

from models import Game, Winner
from core.host import GameHost, MAX_AMOUNT
from core.locks import serialized, with_game_lock
from core.exceptions import (
    AlreadyRedeemed,
    ExternalCallFailed,
    GameNotCompleted,
    GameNotFound,
)
from services.event_service import record_event
from services.payout_service import calculate_game_interest
from services.segment_service import GameClock
from database import transactional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionResult:
    total_amount: int
    total_principal: int
    total_interest: int
    winners: List[str]


class RedemptionEngine:

    @staticmethod
    @serialized
    @transactional
    def redeem_from_external_pool(db: Session, host: GameHost, game_id: str) -> RedemptionResult:
        """
        贖回外部協定中的所有資金（暫停中也可以呼叫）

        異常：
            GameNotFound: Game 不存在
            GameNotCompleted: 遊戲尚未結束
            AlreadyRedeemed: 已經贖回過（不可重試）
            ExternalCallFailed: 借貸池或 token 轉帳失敗（整筆回滾）
        """
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        return RedemptionEngine.redeem(db, host, game)

    @staticmethod
    def redeem(db: Session, host: GameHost, game: Game) -> RedemptionResult:
        """
        贖回的共用流程，呼叫者必須已持有 game 的鎖並在 transaction 內

        流程：
        1. 檢查遊戲已結束且尚未贖回
        2. redeemed = True 並 flush
        3. 有生息 token 餘額才向借貸池提領全部
        4. 利息 = 合約的 token 總餘額 - 本金
        5. 沒有 winner 時，整筆利息轉給 owner
        """
        segment = GameClock(game, host.clock).current_segment()
        if segment <= game.last_segment:
            raise GameNotCompleted(
                f"Game {game.id} is not completed (segment {segment} of {game.last_segment})"
            )
        if game.redeemed:
            raise AlreadyRedeemed(game.id)

        game.redeemed = True
        db.flush()

        a_token = host.token_at(game.a_token_address)
        if a_token.balance_of(game.address) > 0:
            host.lending_pool.withdraw(
                game.token_address,
                MAX_AMOUNT,
                game.address,
                sender=game.address
            )

        token = host.token_at(game.token_address)
        total_amount = token.balance_of(game.address)
        principal = game.total_game_principal
        if total_amount < principal:
            logger.warning(
                f"Game {game.id} redeemed {total_amount}, below its principal {principal}; "
                f"no interest will be distributed"
            )

        interest = calculate_game_interest(total_amount, principal)
        game.total_game_interest = interest

        winners = [
            row.address for row in
            db.query(Winner).filter(Winner.game_id == game.id).order_by(Winner.position).all()
        ]

        record_event(db, game.id, "FundsRedeemedFromExternalPool", {
            "total_amount": total_amount,
            "total_principal": principal,
            "total_interest": interest,
        })
        record_event(db, game.id, "WinnersAnnouncement", {"winners": winners})
        db.flush()

        logger.info(
            f"Game {game.id} redeemed {total_amount} "
            f"(principal {principal}, interest {interest}, {len(winners)} winners)"
        )

        if not winners and interest > 0:
            if not token.transfer(game.address, game.owner, interest):
                raise ExternalCallFailed(
                    "token.transfer",
                    f"could not send interest {interest} to owner {game.owner}"
                )
            logger.info(f"Game {game.id} has no winners; sent interest {interest} to owner {game.owner}")

        return RedemptionResult(
            total_amount=total_amount,
            total_principal=principal,
            total_interest=interest,
            winners=winners,
        )
