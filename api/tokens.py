"""
模擬 token 與借貸池的 Endpoints（測試網 / 本機用的 faucet）

職責：
1. 鑄造付款 token 給玩家
2. 玩家授權遊戲地址拉款
3. 查詢餘額
4. 模擬外部協定產生的利息

mint 與 accrue_yield 不屬於 engine 使用的協作者介面，
所以這裡直接操作 LedgerToken / SimulatedLendingPool
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import BalanceResponse, TokenApprove, TokenMint, YieldAccrual
from api.dependencies import get_host
from core.host import GameHost
from core.exceptions import SavingsGameException
from services.lending_pool import SimulatedLendingPool
from services.token_ledger import LedgerToken

router = APIRouter(prefix="/api", tags=["tokens"])
logger = logging.getLogger(__name__)


def get_simulated_pool(host: GameHost = Depends(get_host)) -> SimulatedLendingPool:
    """只有模擬借貸池才能憑空產生利息"""
    pool = host.lending_pool
    if not isinstance(pool, SimulatedLendingPool):
        raise HTTPException(status_code=400, detail="Yield simulation requires the simulated lending pool")
    return pool


@router.post("/tokens/{asset}/mint", response_model=BalanceResponse)
def mint(asset: str, data: TokenMint, db: Session = Depends(get_db)):
    try:
        token = LedgerToken(db, asset)
        token.mint(data.holder, data.amount)
        db.commit()
        logger.info(f"Minted {data.amount} {asset} to {data.holder}")
        return BalanceResponse(asset=asset, holder=data.holder, amount=token.balance_of(data.holder))

    except Exception as e:
        logger.error(f"Failed to mint: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/tokens/{asset}/approve", response_model=BalanceResponse)
def approve(asset: str, data: TokenApprove, db: Session = Depends(get_db)):
    """返回 spender 目前的授權額度"""
    try:
        token = LedgerToken(db, asset)
        token.approve(data.owner, data.spender, data.amount)
        db.commit()
        return BalanceResponse(asset=asset, holder=data.spender, amount=token.allowance(data.owner, data.spender))

    except Exception as e:
        logger.error(f"Failed to approve: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/tokens/{asset}/balances/{holder}", response_model=BalanceResponse)
def balance_of(asset: str, holder: str, db: Session = Depends(get_db)):
    return BalanceResponse(asset=asset, holder=holder, amount=LedgerToken(db, asset).balance_of(holder))


@router.post("/pool/yield", response_model=BalanceResponse)
def accrue_yield(
    data: YieldAccrual,
    db: Session = Depends(get_db),
    pool: SimulatedLendingPool = Depends(get_simulated_pool)
):
    """模擬外部協定替 holder 產生利息"""
    try:
        pool.accrue_yield(data.holder, data.amount)
        db.commit()
        asset = next(iter(pool.reserves))
        a_token = LedgerToken(db, pool.reserves[asset])
        return BalanceResponse(asset=a_token.address, holder=data.holder, amount=a_token.balance_of(data.holder))

    except SavingsGameException as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to accrue yield: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
