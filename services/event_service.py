"""
事件服務：記錄與查詢遊戲事件

事件類型（對外的觀察介面）：
- GameCreated, Paused, Unpaused
- JoinedGame(participant, amount)
- Deposit(participant, segment, amount)
- Withdrawal(participant, amount)
- EarlyWithdrawal(participant, amount)
- FundsDepositedIntoExternalPool(amount)
- FundsRedeemedFromExternalPool(total_amount, total_principal, total_interest)
- WinnersAnnouncement(winners)
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import EventLog


def record_event(db: Session, game_id: str, event_type: str, data: Dict[str, Any]) -> EventLog:
    """
    新增一筆事件（不 commit，交由外層 transaction 處理）
    """
    event = EventLog(game_id=game_id, event_type=event_type, data=data)
    db.add(event)
    return event


def list_events(db: Session, game_id: str, event_type: Optional[str] = None) -> List[EventLog]:
    query = db.query(EventLog).filter(EventLog.game_id == game_id)
    if event_type:
        query = query.filter(EventLog.event_type == event_type)
    return query.order_by(EventLog.id).all()
