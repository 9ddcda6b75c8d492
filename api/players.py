"""
Player API Endpoints

職責：
1. 加入遊戲、每期存款
2. 提領、提前退出
3. 查詢玩家資訊與付款歷史

呼叫者身分由外層（閘道 / 錢包簽章）驗證，這裡直接使用 participant 欄位
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    ParticipantAction,
    PaymentEntry,
    PaymentResponse,
    PlayerDetailResponse,
    WithdrawalResponse,
)
from api.dependencies import get_host
from core.game_manager import GameManager
from core.host import GameHost
from core.player_ledger import PlayerLedger
from core.payout_calculator import PayoutCalculator
from core.exceptions import (
    GameNotFound,
    PlayerAlreadyJoined,
    PlayerAlreadyWithdrawn,
    PlayerNotFound,
    SavingsGameException,
)
from services.history_service import get_player_payment_history

router = APIRouter(prefix="/api/games", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{game_id}/join", response_model=PaymentResponse, status_code=201)
def join_game(
    game_id: str,
    action: ParticipantAction,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    """
    加入遊戲（同時支付 segment 0）

    前置條件：
    - 遊戲存在、未暫停、還在 segment 0
    - 玩家已 approve 至少一期的金額給遊戲地址
    """
    try:
        player = PlayerLedger.join(db, host, game_id, action.participant)
        game = GameManager.get_game(db, game_id)
        return PaymentResponse(
            participant=player.address,
            segment=player.most_recent_segment_paid,
            amount=game.segment_payment,
            amount_paid=player.amount_paid,
        )

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except PlayerAlreadyJoined as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to join game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/deposit", response_model=PaymentResponse)
def make_deposit(
    game_id: str,
    action: ParticipantAction,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    """支付目前 segment；漏付過任何一期就會被拒絕"""
    try:
        player = PlayerLedger.make_deposit(db, host, game_id, action.participant)
        game = GameManager.get_game(db, game_id)
        return PaymentResponse(
            participant=player.address,
            segment=player.most_recent_segment_paid,
            amount=game.segment_payment,
            amount_paid=player.amount_paid,
        )

    except (GameNotFound, PlayerNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PlayerAlreadyWithdrawn as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to deposit: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/withdraw", response_model=WithdrawalResponse)
def withdraw(
    game_id: str,
    action: ParticipantAction,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    """遊戲結束後提領；第一個提領者會觸發贖回"""
    try:
        amount = PayoutCalculator.withdraw(db, host, game_id, action.participant)
        return WithdrawalResponse(participant=action.participant, amount=amount)

    except (GameNotFound, PlayerNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PlayerAlreadyWithdrawn as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to withdraw: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/early-withdraw", response_model=WithdrawalResponse)
def early_withdraw(
    game_id: str,
    action: ParticipantAction,
    db: Session = Depends(get_db),
    host: GameHost = Depends(get_host)
):
    """遊戲中途退出，扣除手續費"""
    try:
        amount = PayoutCalculator.early_withdraw(db, host, game_id, action.participant)
        return WithdrawalResponse(participant=action.participant, amount=amount)

    except (GameNotFound, PlayerNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PlayerAlreadyWithdrawn as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SavingsGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to early withdraw: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}/players/{address}", response_model=PlayerDetailResponse)
def get_player(game_id: str, address: str, db: Session = Depends(get_db)):
    try:
        game = GameManager.get_game(db, game_id)
        player = GameManager.get_player(db, game_id, address)
        history = get_player_payment_history(game_id, address, db)
        return PlayerDetailResponse(
            address=player.address,
            join_order=player.join_order,
            withdrawn=player.withdrawn,
            most_recent_segment_paid=player.most_recent_segment_paid,
            amount_paid=player.amount_paid,
            is_winner=player.most_recent_segment_paid == game.last_segment - 1,
            history=[PaymentEntry(**entry) for entry in history],
        )

    except (GameNotFound, PlayerNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
