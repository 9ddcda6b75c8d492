from fastapi import Depends
from sqlalchemy.orm import Session

from core.host import GameHost, build_simulated_host
from database import get_db, get_settings


def get_host(db: Session = Depends(get_db)) -> GameHost:
    """
    FastAPI dependency：提供 engine 使用的外部協作者

    預設接上模擬的 token 帳本與借貸池（和 request 共用同一個 session）
    """
    return build_simulated_host(db, get_settings())
