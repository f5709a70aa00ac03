from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import ResistanceGameException, GameBusy

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./resistance_game.db"
    log_level: str = "INFO"
    # 樂觀鎖衝突時，同一個動作最多執行幾次
    stale_retry_attempts: int = 3

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要 check_same_thread=False：WebSocket 的動作會在 threadpool 中執行
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求（或 WebSocket 連線）結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """
    FastAPI dependency：提供 sessionmaker

    WebSocket 連線會持續很久，每個動作各自開一個 Session，
    而不是整條連線共用一個
    """
    return SessionLocal


def transactional(func):
    """
    Transaction decorator：確保一個遊戲動作的所有寫入是原子的

    一個動作可能同時修改 Game、Mission、Round，
    全部在同一個 transaction 內 commit，失敗就整個 rollback，
    不會留下 Game 與 Mission/Round 不一致的狀態。

    使用方式：
        @transactional
        def some_action(db: Session, ...):
            game.current_round_index += 1
            # 不需要手動 commit，decorator 會處理

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit
        - 異常會在 rollback 後重新拋出（讓上層處理）
        - 樂觀鎖衝突（StaleDataError）會 rollback 後整個函式重跑，
          函式內不要有資料庫以外的副作用
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
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

        attempts = max(1, get_settings().stale_retry_attempts)
        for attempt in range(1, attempts + 1):
            try:
                result = func(*args, **kwargs)
                db.commit()
                return result
            except StaleDataError:
                # 另一個動作先 commit 了同一場 Game：rollback 後用最新狀態重跑
                db.rollback()
                if attempt == attempts:
                    logger.warning(f"Giving up {func.__name__} after {attempts} concurrent updates")
                    raise GameBusy(func.__name__)
                logger.info(f"Retrying {func.__name__} after a concurrent update ({attempt}/{attempts})")
            except ResistanceGameException as e:
                # 客戶端違規不是系統錯誤，不印 traceback
                logger.warning(f"Rejected {func.__name__}: {e}")
                db.rollback()
                raise
            except Exception as e:
                logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
                db.rollback()
                raise

    return wrapper
