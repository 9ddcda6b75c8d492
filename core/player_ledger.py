"""
Player Ledger：玩家的加入與每期存款

規則：
- 只能在 segment 0 加入，加入時同時付第一期
- segment 1 到 last_segment - 1 每期都要付，漏付一期就永久出局
- 在 last_segment - 1 付款的玩家成為 winner

所有前置條件在任何變更之前檢查；
外部轉帳永遠是最後一步，帳本先 flush，回呼進來的呼叫看到的是已更新的狀態
"""
from sqlalchemy.orm import Session
import logging

from models import Game, Player, SegmentDeposit, Winner
from core.game_manager import ensure_not_paused
from core.host import GameHost
from core.locks import serialized, with_game_lock, with_player_lock
from core.exceptions import (
    DepositWindowClosed,
    ExternalCallFailed,
    GameNotFound,
    InsufficientAllowance,
    JoinWindowClosed,
    PlayerAlreadyJoined,
    PlayerAlreadyWithdrawn,
    PlayerNotFound,
    PreviousSegmentNotPaid,
    SegmentAlreadyPaid,
)
from services.event_service import record_event
from services.segment_service import GameClock, is_deposit_segment, is_winning_segment
from database import transactional

logger = logging.getLogger(__name__)


class PlayerLedger:
    """玩家付款帳本"""

    @staticmethod
    @serialized
    @transactional
    def join(db: Session, host: GameHost, game_id: str, participant: str) -> Player:
        """
        加入遊戲並支付第一期

        前置條件：
        1. Game 存在且未暫停
        2. 目前是 segment 0
        3. 玩家還沒加入過

        異常：
            GameNotFound, GamePaused, JoinWindowClosed, PlayerAlreadyJoined
            InsufficientAllowance: 授權額度不足
            ExternalCallFailed: transferFrom 失敗（整個加入一起回滾）
        """
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        ensure_not_paused(game)

        segment = GameClock(game, host.clock).current_segment()
        if segment != 0:
            raise JoinWindowClosed(segment)

        if with_player_lock(game_id, participant, db).first():
            raise PlayerAlreadyJoined(participant)

        join_order = db.query(Player).filter(Player.game_id == game_id).count()
        player = Player(
            game_id=game.id,
            address=participant,
            join_order=join_order,
            withdrawn=False,
            most_recent_segment_paid=0,
            amount_paid=0,
        )

        record_event(db, game.id, "JoinedGame", {
            "participant": participant,
            "amount": game.segment_payment,
        })
        _record_payment(db, host, game, player, segment)

        logger.info(f"Player {participant} joined game {game_id} (#{join_order + 1})")
        return player

    @staticmethod
    @serialized
    @transactional
    def make_deposit(db: Session, host: GameHost, game_id: str, participant: str) -> Player:
        """
        支付目前 segment 的款項

        前置條件：
        1. 玩家存在且尚未退出
        2. 目前 segment 在 (0, last_segment) 之間
        3. 這一期還沒付
        4. 上一期有付（沒有補繳，漏一期就出局）

        效果：
            目前是 last_segment - 1 時，玩家加入 winner 名單
        """
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        ensure_not_paused(game)

        player = with_player_lock(game_id, participant, db).first()
        if not player:
            raise PlayerNotFound(participant)
        if player.withdrawn:
            raise PlayerAlreadyWithdrawn(participant)

        segment = GameClock(game, host.clock).current_segment()
        if not is_deposit_segment(segment, game.last_segment):
            raise DepositWindowClosed(segment)
        if player.most_recent_segment_paid == segment:
            raise SegmentAlreadyPaid(participant, segment)
        if player.most_recent_segment_paid != segment - 1:
            raise PreviousSegmentNotPaid(participant, segment)

        if is_winning_segment(segment, game.last_segment):
            position = db.query(Winner).filter(Winner.game_id == game_id).count()
            db.add(Winner(game_id=game.id, address=participant, position=position))
            logger.info(f"Player {participant} completed all segments of game {game_id}")

        _record_payment(db, host, game, player, segment)

        logger.info(f"Player {participant} paid segment {segment} of game {game_id}")
        return player


def _record_payment(db: Session, host: GameHost, game: Game, player: Player, segment: int) -> None:
    """
    記錄一期付款（join 與 make_deposit 共用）

    順序：
    1. 檢查授權額度
    2. 更新玩家、本金、segment 存款，並 flush
    3. 最後才從玩家拉款；失敗就拋出異常，由 @transactional 整筆回滾
    """
    payment = game.segment_payment
    token = host.token_at(game.token_address)

    allowance = token.allowance(player.address, game.address)
    if allowance < payment:
        raise InsufficientAllowance(player.address, allowance, payment)

    player.most_recent_segment_paid = segment
    player.amount_paid = player.amount_paid + payment
    game.total_game_principal = game.total_game_principal + payment

    bucket = db.get(SegmentDeposit, (game.id, segment))
    if bucket is None:
        bucket = SegmentDeposit(game_id=game.id, segment=segment, amount=0)
        db.add(bucket)
    bucket.amount = bucket.amount + payment

    db.add(player)
    record_event(db, game.id, "Deposit", {
        "participant": player.address,
        "segment": segment,
        "amount": payment,
    })
    db.flush()

    if not token.transfer_from(game.address, player.address, game.address, payment):
        raise ExternalCallFailed(
            "token.transferFrom",
            f"could not pull {payment} from {player.address}"
        )
