"""
Player API Endpoints

職責：
1. 玩家加入遊戲
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import PlayerJoin, PlayerResponse
from core.game_manager import GameManager
from core.exceptions import GameNotFound, GameNotAcceptingPlayers, InvalidPlayerCount

router = APIRouter(prefix="/api/games", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{session_id}/join", response_model=PlayerResponse)
def join_game(session_id: str, player_data: PlayerJoin, db: Session = Depends(get_db)):
    """
    加入遊戲（玩家 endpoint）

    前置條件：
    - 遊戲必須存在
    - 遊戲還在 lobby（尚未開始）
    - 人數未滿

    流程：
    1. 透過 session code 找到 Game 並鎖定
    2. 檢查是否接受新玩家
    3. 依加入順序分配座位（座位決定隊長輪替順序）
    4. 返回玩家資訊
    """
    try:
        player = GameManager.join_game(db, session_id, player_data.nickname)

        return PlayerResponse(
            player_id=player.id,
            session_id=player.session_id,
            seat=player.seat
        )

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except (GameNotAcceptingPlayers, InvalidPlayerCount) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to join game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
