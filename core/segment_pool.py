"""
Segment Pool：把上一個 segment 收到的本金存進外部生息協定

任何人都可以觸發（通常是 keeper 或管理員），每個 segment 的款項只會被搬一次：
先把 bucket 歸零並 flush，才呼叫借貸池
"""
from sqlalchemy.orm import Session
import logging

from models import SegmentDeposit
from core.game_manager import ensure_not_paused
from core.host import GameHost
from core.locks import serialized, with_game_lock
from core.exceptions import (
    ExternalCallFailed,
    GameAlreadyCompleted,
    GameNotFound,
    NothingToDeposit,
)
from services.event_service import record_event
from services.segment_service import GameClock, is_game_completed
from database import transactional

logger = logging.getLogger(__name__)


class SegmentPool:

    @staticmethod
    @serialized
    @transactional
    def deposit_into_external_pool(db: Session, host: GameHost, game_id: str) -> int:
        """
        Sweep：把 segment (current - 1) 的款項存進外部協定

        前置條件：
        1. Game 存在、未暫停、尚未結束
        2. 目前 segment > 0
        3. 上一個 segment 的 bucket 金額 > 0（空的 bucket 是錯誤，不是 no-op）

        返回：
            搬走的金額
        """
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        ensure_not_paused(game)

        segment = GameClock(game, host.clock).current_segment()
        if is_game_completed(segment, game.last_segment):
            raise GameAlreadyCompleted(f"Game {game_id} is already completed")
        if segment <= 0:
            raise NothingToDeposit("Cannot deposit into the external pool during segment zero")

        bucket = db.get(SegmentDeposit, (game.id, segment - 1))
        amount = bucket.amount if bucket else 0
        if amount <= 0:
            raise NothingToDeposit(
                f"No amount from segment {segment - 1} to deposit into the external pool"
            )

        bucket.amount = 0
        record_event(db, game.id, "FundsDepositedIntoExternalPool", {"amount": amount})
        db.flush()

        token = host.token_at(game.token_address)
        if not token.approve(game.address, host.lending_pool.address, amount):
            raise ExternalCallFailed("token.approve", f"could not approve {amount} for the lending pool")
        host.lending_pool.deposit(
            game.token_address,
            amount,
            game.address,
            host.referral_code,
            sender=game.address
        )

        logger.info(f"Swept {amount} from segment {segment - 1} of game {game_id} into the external pool")
        return amount
