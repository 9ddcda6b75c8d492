"""
並發控制工具

兩層保護，對應「每個操作獨佔整份帳本直到結束」的執行模型：

1. Process 內：serialized 用一把可重入的 mutex 串行化所有變更操作。
   可重入是必要的，外部協作者在 transfer 途中回呼 engine 時仍在同一個執行緒。
2. Database：PostgreSQL 的 SELECT ... FOR UPDATE 悲觀鎖（SQLite 會忽略這個子句，
   由資料庫層級的寫入鎖串行化）
"""
import threading
from functools import wraps

from sqlalchemy.orm import Session, Query

from models import Game, Player

_game_mutex = threading.RLock()


def serialized(func):
    """
    串行化 decorator：同一時間只有一個變更操作在執行

    必須放在 @transactional 外層，確保 commit/rollback 也在鎖內完成
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        with _game_mutex:
            return func(*args, **kwargs)

    return wrapper


def with_game_lock(game_id: str, db: Session) -> Query:
    """
    鎖定一個 Game（行級鎖）

    使用場景：
    - 修改帳本（本金、利息、redeemed、segment 存款）時
    - 需要確保 Game 在整個 transaction 期間不被其他請求修改

    範例：
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        game.paused = True

    參數：
        game_id: Game 的 UUID
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）
    """
    return db.query(Game).filter(
        Game.id == game_id
    ).with_for_update(nowait=False)


def with_player_lock(game_id: str, address: str, db: Session) -> Query:
    """
    鎖定一個 Player（行級鎖）

    參數：
        game_id: Game 的 UUID
        address: 玩家地址
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 來取得結果）
    """
    return db.query(Player).filter(
        Player.game_id == game_id,
        Player.address == address
    ).with_for_update(nowait=False)
