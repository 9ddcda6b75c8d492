from sqlalchemy import create_engine, event
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./savings_game.db"
    log_level: str = "INFO"

    # 模擬的外部協定（付款 token、生息 token、借貸池）
    token_address: str = "DAI"
    a_token_address: str = "aDAI"
    lending_pool_address: str = "aave-lending-pool"
    referral_code: int = 155

    # 新遊戲的預設參數
    default_segment_count: int = 6
    default_segment_length: int = 604800
    default_segment_payment: int = 10 * 10 ** 18
    default_early_withdrawal_fee: int = 10

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def create_db_engine(database_url: str, **kwargs):
    """
    建立 SQLAlchemy Engine

    SQLite 需要特殊設定：
    - connect_args={"check_same_thread": False}：允許多執行緒存取同一個連線
    - pysqlite 預設的交易處理不支援 SAVEPOINT，改由 SQLAlchemy 自己發出 BEGIN，
      讓重入呼叫（外部合約回呼）可以用 begin_nested() 隔離
    """
    is_sqlite = database_url.startswith("sqlite")
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        pool_pre_ping=True,
        **kwargs
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


engine = create_db_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            game = Game(...)
            db.add(game)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback（包含模擬 token 帳本的變更，它們共用同一個 session）
        - 異常會被重新拋出（讓上層處理）

    重入呼叫（外部協作者在 transfer 期間回呼 engine）：
        - 不會 commit，也不會回滾外層
        - 以 SAVEPOINT 包住，失敗只撤銷這一層的變更

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        depth = db.info.get("transaction_depth", 0)
        db.info["transaction_depth"] = depth + 1
        try:
            if depth:
                with db.begin_nested():
                    return func(*args, **kwargs)

            try:
                result = func(*args, **kwargs)
                db.commit()
                return result
            except Exception as e:
                logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
                db.rollback()
                raise
        finally:
            db.info["transaction_depth"] = depth

    return wrapper
