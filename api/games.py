"""
Game API Endpoints

職責：
1. 建立遊戲、查詢狀態
2. Sweep（把上一期的本金存進外部協定）與贖回，任何人都可以觸發
3. 暫停 / 恢復（owner）
4. 查詢玩家名冊、winner 名單、事件
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db, get_settings
from models import Game
from schemas import (
    EventResponse,
    GameCreate,
    GameResponse,
    OwnerAction,
    PlayerResponse,
    RedemptionResponse,
    SweepResponse,
    WinnersResponse,
)
from api.dependencies import get_host
from core.game_manager import GameManager
from core.host import GameHost
from core.redemption_engine import RedemptionEngine
from core.segment_pool import SegmentPool
from core.exceptions import (
    AlreadyRedeemed,
    GameNotFound,
    NotGameOwner,
    SavingsGameException,
)
from services.event_service import list_events
from services.segment_service import GameClock

router = APIRouter(prefix="/api/games", tags=["games"])
logger = logging.getLogger(__name__)


def build_game_response(game: Game, host: GameHost) -> GameResponse:
    clock = GameClock(game, host.clock)
    return GameResponse(
        id=game.id,
        address=game.address,
        owner=game.owner,
        token_address=game.token_address,
        a_token_address=game.a_token_address,
        lending_pool_address=game.lending_pool_address,
        first_segment_start=game.first_segment_start,
        segment_length=game.segment_length,
        last_segment=game.last_segment,
        segment_payment=game.segment_payment,
        early_withdrawal_fee=game.early_withdrawal_fee,
        total_game_principal=game.total_game_principal,
        total_game_interest=game.total_game_interest,
        redeemed=game.redeemed,
        paused=game.paused,
        current_segment=clock.current_segment(),
        completed=clock.is_completed(),
    )


@router.post("", response_model=GameResponse, status_code=201)
def create_game(
    game_data: GameCreate,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    """
    建立遊戲

    未指定的參數使用 Settings 裡的預設值，segment 0 從現在開始
    """
    settings = get_settings()
    try:
        game = GameManager.create_game(
            db,
            host,
            owner=game_data.owner,
            token_address=game_data.token_address or settings.token_address,
            segment_count=game_data.segment_count or settings.default_segment_count,
            segment_length=game_data.segment_length or settings.default_segment_length,
            segment_payment=game_data.segment_payment or settings.default_segment_payment,
            early_withdrawal_fee=(
                game_data.early_withdrawal_fee
                if game_data.early_withdrawal_fee is not None
                else settings.default_early_withdrawal_fee
            ),
        )
        return build_game_response(game, host)

    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}", response_model=GameResponse)
def get_game(game_id: str, db: Session = Depends(get_db), host: GameHost = Depends(get_host)):
    """取得遊戲狀態（包含目前 segment 與是否已結束）"""
    try:
        game = GameManager.get_game(db, game_id)
        return build_game_response(game, host)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except Exception as e:
        logger.error(f"Failed to get game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}/players", response_model=List[PlayerResponse])
def list_players(game_id: str, db: Session = Depends(get_db)):
    try:
        game = GameManager.get_game(db, game_id)
        players = GameManager.list_players(db, game_id)
        return [
            PlayerResponse(
                address=player.address,
                join_order=player.join_order,
                withdrawn=player.withdrawn,
                most_recent_segment_paid=player.most_recent_segment_paid,
                amount_paid=player.amount_paid,
                is_winner=player.most_recent_segment_paid == game.last_segment - 1,
            )
            for player in players
        ]

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except Exception as e:
        logger.error(f"Failed to list players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}/winners", response_model=WinnersResponse)
def list_winners(game_id: str, db: Session = Depends(get_db)):
    try:
        return WinnersResponse(winners=GameManager.list_winners(db, game_id))

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except Exception as e:
        logger.error(f"Failed to list winners: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}/events", response_model=List[EventResponse])
def get_events(
    game_id: str,
    event_type: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """事件紀錄，可用 event_type 篩選（例如 Deposit、EarlyWithdrawal）"""
    try:
        GameManager.get_game(db, game_id)
        return [
            EventResponse(event_type=event.event_type, data=event.data, created_at=event.created_at)
            for event in list_events(db, game_id, event_type)
        ]

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except Exception as e:
        logger.error(f"Failed to get events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/sweep", response_model=SweepResponse)
def deposit_into_external_pool(
    game_id: str,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    """
    把上一個 segment 的本金存進外部協定

    上一個 segment 沒有款項時返回 400，不會靜默成功
    """
    try:
        amount = SegmentPool.deposit_into_external_pool(db, host, game_id)
        return SweepResponse(amount=amount)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to sweep game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/redeem", response_model=RedemptionResponse)
def redeem_from_external_pool(
    game_id: str,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    """遊戲結束後贖回所有資金；只能成功一次"""
    try:
        result = RedemptionEngine.redeem_from_external_pool(db, host, game_id)
        return RedemptionResponse(
            total_amount=result.total_amount,
            total_principal=result.total_principal,
            total_interest=result.total_interest,
            winners=result.winners,
        )

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except AlreadyRedeemed as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to redeem game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/pause", response_model=GameResponse)
def pause_game(
    game_id: str,
    action: OwnerAction,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    try:
        game = GameManager.pause(db, game_id, action.caller)
        return build_game_response(game, host)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except NotGameOwner as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to pause game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/unpause", response_model=GameResponse)
def unpause_game(
    game_id: str,
    action: OwnerAction,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    try:
        game = GameManager.unpause(db, game_id, action.caller)
        return build_game_response(game, host)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except NotGameOwner as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to unpause game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
