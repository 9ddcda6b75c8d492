"""
Player history service.

Builds a per-player payment history from the event log so clients can
render the ledger without reconstructing it from the raw events.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from models import EventLog


def get_player_payment_history(game_id: str, address: str, db: Session) -> List[Dict[str, Any]]:
    """
    Return the player's payments in segment order, followed by the exit
    (withdrawal or early withdrawal) if there is one.
    """
    rows = (
        db.query(EventLog)
        .filter(
            EventLog.game_id == game_id,
            EventLog.event_type.in_(["Deposit", "Withdrawal", "EarlyWithdrawal"]),
        )
        .order_by(EventLog.id)
        .all()
    )

    history: List[Dict[str, Any]] = []

    for event in rows:
        if event.data.get("participant") != address:
            continue

        if event.event_type == "Deposit":
            history.append({
                "kind": "payment",
                "segment": event.data["segment"],
                "amount": event.data["amount"],
            })
        else:
            # Exits carry no segment; the payout is what left the pool.
            history.append({
                "kind": "early_withdrawal" if event.event_type == "EarlyWithdrawal" else "withdrawal",
                "segment": None,
                "amount": event.data["amount"],
            })

    return history
