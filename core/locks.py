"""
並發控制工具

提供 Database-level 的鎖定機制，防止同一場遊戲的動作互相覆蓋

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）；
SQLite 不支援 FOR UPDATE，會直接忽略（SQLite 本身就是整個資料庫寫入鎖）
"""
from sqlalchemy.orm import Session, Query

from models import Game, Player


def with_game_lock(session_id: str, db: Session) -> Query:
    """
    鎖定一場 Game（行級鎖）

    使用場景：
    - 所有遊戲內動作：讀取 waiting_for、修改階段、建立回合/任務
    - 確保同一階段只有一個請求會看到 barrier 歸零並推進階段

    範例：
        game = with_game_lock(session_id, db).first()
        if not game:
            raise UnknownSession(action, session_id)

    參數：
        session_id: Game 的 session code
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Game).filter(
        Game.session_id == session_id
    ).with_for_update(nowait=False)


def with_player_lock(player_id: str, db: Session) -> Query:
    """
    鎖定一位 Player（綁定 / 解除連線時使用）

    參數：
        player_id: Player ID
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 來取得結果）
    """
    return db.query(Player).filter(
        Player.id == player_id
    ).with_for_update(nowait=False)
