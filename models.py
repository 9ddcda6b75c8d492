"""
資料模型

Game 對應一份「合約」：建立時決定所有參數，之後只有帳本欄位會變動。
金額一律是整數的 token 最小單位（例如 1e18 倍的 DAI），用 BigAmount 以十進位字串
保存，避免 SQLite INTEGER 的 64-bit 溢位。
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BigAmount(TypeDecorator):
    """任意精度的非負整數金額，以十進位字串保存"""

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=_uuid)
    address = Column(String(42), unique=True, nullable=False)
    owner = Column(String(64), nullable=False)

    # 外部協作者的身分（建立後不可變）
    token_address = Column(String(64), nullable=False)
    a_token_address = Column(String(64), nullable=False)
    lending_pool_address = Column(String(64), nullable=False)
    data_provider_address = Column(String(64), nullable=False)

    # 遊戲參數（建立後不可變）
    first_segment_start = Column(Integer, nullable=False)
    segment_length = Column(Integer, nullable=False)
    last_segment = Column(Integer, nullable=False)
    segment_payment = Column(BigAmount, nullable=False)
    early_withdrawal_fee = Column(Integer, nullable=False)

    # 帳本
    total_game_principal = Column(BigAmount, nullable=False, default=0)
    total_game_interest = Column(BigAmount, nullable=False, default=0)
    redeemed = Column(Boolean, nullable=False, default=False)
    paused = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)

    players = relationship("Player", back_populates="game", order_by="Player.join_order")
    winners = relationship("Winner", back_populates="game", order_by="Winner.position")


class Player(Base):
    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("game_id", "address", name="uq_player_game_address"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    address = Column(String(64), nullable=False)
    join_order = Column(Integer, nullable=False)

    withdrawn = Column(Boolean, nullable=False, default=False)
    most_recent_segment_paid = Column(Integer, nullable=False, default=0)
    amount_paid = Column(BigAmount, nullable=False, default=0)

    joined_at = Column(DateTime(timezone=True), default=_utcnow)

    game = relationship("Game", back_populates="players")


class SegmentDeposit(Base):
    """某個 segment 收到、但還沒存進外部協定的本金"""
    __tablename__ = "segment_deposits"

    game_id = Column(String(36), ForeignKey("games.id"), primary_key=True)
    segment = Column(Integer, primary_key=True)
    amount = Column(BigAmount, nullable=False, default=0)


class Winner(Base):
    __tablename__ = "winners"
    __table_args__ = (UniqueConstraint("game_id", "address", name="uq_winner_game_address"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    address = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False)

    game = relationship("Game", back_populates="winners")


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=True, index=True)
    event_type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


# ============ 模擬的 token 帳本 ============

class TokenBalance(Base):
    __tablename__ = "token_balances"

    asset = Column(String(64), primary_key=True)
    holder = Column(String(64), primary_key=True)
    amount = Column(BigAmount, nullable=False, default=0)


class TokenAllowance(Base):
    __tablename__ = "token_allowances"

    asset = Column(String(64), primary_key=True)
    owner = Column(String(64), primary_key=True)
    spender = Column(String(64), primary_key=True)
    amount = Column(BigAmount, nullable=False, default=0)
