from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============ Game ============

class GameCreate(BaseModel):
    owner: str = Field(..., min_length=1)
    token_address: Optional[str] = None
    segment_count: Optional[int] = Field(None, ge=1)
    segment_length: Optional[int] = Field(None, ge=1)
    segment_payment: Optional[int] = Field(None, ge=1)
    early_withdrawal_fee: Optional[int] = Field(None, ge=0, le=100)


class GameResponse(BaseModel):
    id: str
    address: str
    owner: str
    token_address: str
    a_token_address: str
    lending_pool_address: str
    first_segment_start: int
    segment_length: int
    last_segment: int
    segment_payment: int
    early_withdrawal_fee: int
    total_game_principal: int
    total_game_interest: int
    redeemed: bool
    paused: bool
    current_segment: int
    completed: bool


class OwnerAction(BaseModel):
    caller: str = Field(..., min_length=1)


class SweepResponse(BaseModel):
    amount: int


class RedemptionResponse(BaseModel):
    total_amount: int
    total_principal: int
    total_interest: int
    winners: List[str]


class WinnersResponse(BaseModel):
    winners: List[str]


class EventResponse(BaseModel):
    event_type: str
    data: Dict[str, Any]
    created_at: Optional[datetime] = None


# ============ Player ============

class ParticipantAction(BaseModel):
    participant: str = Field(..., min_length=1)


class PlayerResponse(BaseModel):
    address: str
    join_order: int
    withdrawn: bool
    most_recent_segment_paid: int
    amount_paid: int
    is_winner: bool


class PaymentEntry(BaseModel):
    kind: str
    segment: Optional[int] = None
    amount: int


class PlayerDetailResponse(PlayerResponse):
    history: List[PaymentEntry]


class PaymentResponse(BaseModel):
    participant: str
    segment: int
    amount: int
    amount_paid: int


class WithdrawalResponse(BaseModel):
    participant: str
    amount: int


# ============ Simulated token / pool ============

class TokenMint(BaseModel):
    holder: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)


class TokenApprove(BaseModel):
    owner: str = Field(..., min_length=1)
    spender: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)


class BalanceResponse(BaseModel):
    asset: str
    holder: str
    amount: int


class YieldAccrual(BaseModel):
    holder: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)
