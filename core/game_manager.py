"""
Game Manager：管理 Game 的建立、管理操作與查詢

職責：
1. 建立 Game（驗證參數、解析生息 token、記錄開始時間）
2. 暫停 / 恢復（只有 owner）
3. 查詢 Game、玩家名冊、winner 名單、segment 存款
"""
from sqlalchemy.orm import Session
from typing import Dict, List, Optional
import logging

from models import Game, Player, SegmentDeposit, Winner
from core.host import GameHost
from core.locks import serialized, with_game_lock
from core.exceptions import (
    GameNotFound,
    GamePaused,
    InvalidGameConfig,
    InvalidStateTransition,
    NotGameOwner,
    PlayerNotFound,
)
from services.event_service import record_event
from services.naming_service import generate_game_address
from services.segment_service import GameClock
from database import transactional

logger = logging.getLogger(__name__)


def ensure_not_paused(game: Game) -> None:
    if game.paused:
        raise GamePaused(game.id)


class GameManager:
    """Game 生命週期管理器"""

    @staticmethod
    @serialized
    @transactional
    def create_game(
        db: Session,
        host: GameHost,
        owner: str,
        token_address: str,
        segment_count: int,
        segment_length: int,
        segment_payment: int,
        early_withdrawal_fee: int,
    ) -> Game:
        """
        建立新遊戲

        流程：
        1. 驗證參數
        2. 透過 data provider 解析生息 token 地址（只在建立時做一次）
        3. 生成唯一的合約地址
        4. 以 host 時鐘作為 segment 0 的開始時間
        5. 記錄事件

        異常：
            InvalidGameConfig: 參數不合法
            ExternalCallFailed: data provider 不認得這個資產
        """
        if not owner:
            raise InvalidGameConfig("Owner is required")
        if not token_address:
            raise InvalidGameConfig("Token address is required")
        if segment_count < 1:
            raise InvalidGameConfig(f"Segment count must be at least 1, got {segment_count}")
        if segment_length < 1:
            raise InvalidGameConfig(f"Segment length must be at least 1, got {segment_length}")
        if segment_payment < 1:
            raise InvalidGameConfig(f"Segment payment must be positive, got {segment_payment}")
        if not 0 <= early_withdrawal_fee <= 100:
            raise InvalidGameConfig(
                f"Early withdrawal fee must be between 0 and 100, got {early_withdrawal_fee}"
            )

        a_token_address, _, _ = host.data_provider.get_reserve_tokens_addresses(token_address)

        address = generate_game_address()
        while db.query(Game).filter(Game.address == address).first():
            address = generate_game_address()
            logger.warning(f"Game address collision detected, regenerating: {address}")

        game = Game(
            address=address,
            owner=owner,
            token_address=token_address,
            a_token_address=a_token_address,
            lending_pool_address=host.lending_pool.address,
            data_provider_address=host.data_provider.address,
            first_segment_start=host.clock(),
            segment_length=segment_length,
            last_segment=segment_count,
            segment_payment=segment_payment,
            early_withdrawal_fee=early_withdrawal_fee,
            total_game_principal=0,
            total_game_interest=0,
            redeemed=False,
            paused=False,
        )
        db.add(game)
        db.flush()

        record_event(db, game.id, "GameCreated", {
            "address": address,
            "owner": owner,
            "segment_count": segment_count,
            "segment_length": segment_length,
            "segment_payment": segment_payment,
            "early_withdrawal_fee": early_withdrawal_fee,
        })

        logger.info(
            f"Created game {game.id} at {address}: {segment_count} segments of "
            f"{segment_length}s, payment {segment_payment}, fee {early_withdrawal_fee}%"
        )
        return game

    @staticmethod
    @serialized
    @transactional
    def pause(db: Session, game_id: str, caller: str) -> Game:
        """
        暫停遊戲（owner only）

        暫停期間不能加入、存款、sweep 或提前退出；
        遊戲結束後的提領與贖回不受影響
        """
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        if caller != game.owner:
            raise NotGameOwner(caller)
        if game.paused:
            raise InvalidStateTransition(f"Game {game_id} is already paused")

        game.paused = True
        record_event(db, game.id, "Paused", {"account": caller})
        logger.info(f"Game {game_id} paused by {caller}")
        return game

    @staticmethod
    @serialized
    @transactional
    def unpause(db: Session, game_id: str, caller: str) -> Game:
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        if caller != game.owner:
            raise NotGameOwner(caller)
        if not game.paused:
            raise InvalidStateTransition(f"Game {game_id} is not paused")

        game.paused = False
        record_event(db, game.id, "Unpaused", {"account": caller})
        logger.info(f"Game {game_id} unpaused by {caller}")
        return game

    @staticmethod
    def get_game(db: Session, game_id: str) -> Game:
        """
        透過 UUID 取得 Game

        異常：
            GameNotFound: Game 不存在
        """
        game = db.query(Game).filter(Game.id == game_id).first()
        if not game:
            raise GameNotFound(game_id)
        return game

    @staticmethod
    def get_current_segment(db: Session, host: GameHost, game_id: str) -> int:
        game = GameManager.get_game(db, game_id)
        return GameClock(game, host.clock).current_segment()

    @staticmethod
    def is_game_completed(db: Session, host: GameHost, game_id: str) -> bool:
        game = GameManager.get_game(db, game_id)
        return GameClock(game, host.clock).is_completed()

    @staticmethod
    def get_player(db: Session, game_id: str, address: str) -> Player:
        player = db.query(Player).filter(
            Player.game_id == game_id,
            Player.address == address
        ).first()
        if not player:
            raise PlayerNotFound(address)
        return player

    @staticmethod
    def list_players(db: Session, game_id: str) -> List[Player]:
        """依加入順序列出玩家（包含已退出的）"""
        GameManager.get_game(db, game_id)
        return db.query(Player).filter(
            Player.game_id == game_id
        ).order_by(Player.join_order).all()

    @staticmethod
    def list_winners(db: Session, game_id: str) -> List[str]:
        GameManager.get_game(db, game_id)
        rows = db.query(Winner).filter(
            Winner.game_id == game_id
        ).order_by(Winner.position).all()
        return [row.address for row in rows]

    @staticmethod
    def get_segment_deposits(db: Session, game_id: str, segment: Optional[int] = None) -> Dict[int, int]:
        """尚未存進外部協定的本金，依 segment 分組"""
        GameManager.get_game(db, game_id)
        query = db.query(SegmentDeposit).filter(SegmentDeposit.game_id == game_id)
        if segment is not None:
            query = query.filter(SegmentDeposit.segment == segment)
        return {row.segment: row.amount for row in query.order_by(SegmentDeposit.segment).all()}
