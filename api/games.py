"""
Game API Endpoints

職責：
1. 建立遊戲
2. 開始遊戲
3. 查詢遊戲狀態（短輪詢 / 重新連線時使用）
4. 查詢玩家陣營
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import Game
from schemas import GameCreate, PlayerResponse, GameStateResponse, FactionResponse
from core.game_manager import GameManager
from core.exceptions import (
    GameNotFound,
    PlayerNotFound,
    InvalidPlayerCount,
    GameNotAcceptingPlayers,
)

router = APIRouter(prefix="/api/games", tags=["games"])
logger = logging.getLogger(__name__)


def _game_state_response(game: Game) -> GameStateResponse:
    player_ids = game.player_ids
    current_leader_id = None
    mission_size = None
    if not game.in_lobby and player_ids:
        current_leader_id = player_ids[game.current_leader_index]
    if 0 <= game.current_mission_index < len(game.missions):
        mission_size = game.missions[game.current_mission_index].mission_size

    return GameStateResponse(
        session_id=game.session_id,
        in_lobby=game.in_lobby,
        phase=game.current_expected_action,
        player_ids=player_ids,
        current_leader_id=current_leader_id,
        current_mission_index=game.current_mission_index,
        current_round_index=game.current_round_index,
        mission_size=mission_size,
        waiting_for=list(game.waiting_for or []),
    )


@router.post("", response_model=PlayerResponse, status_code=201)
def create_game(game_data: GameCreate, db: Session = Depends(get_db)):
    """
    建立遊戲，建立者自動成為第一位玩家

    返回：
        - player_id: 建立者的 player ID
        - session_id: 6 位 session code（分享給其他玩家加入）
        - seat: 0
    """
    try:
        game, creator = GameManager.create_game(db, game_data.nickname)
        return PlayerResponse(
            player_id=creator.id,
            session_id=game.session_id,
            seat=creator.seat
        )

    except Exception as e:
        logger.error(f"Failed to create game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{session_id}/start", response_model=GameStateResponse)
def start_game(session_id: str, db: Session = Depends(get_db)):
    """
    開始遊戲

    前置條件：
    - 遊戲還在 lobby
    - 5-10 位玩家

    效果：
    - 分配間諜
    - 階段切到 factionViewed，等待所有玩家確認陣營
    """
    try:
        game = GameManager.start_game(db, session_id)
        return _game_state_response(game)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except (InvalidPlayerCount, GameNotAcceptingPlayers) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to start game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{session_id}/state", response_model=GameStateResponse)
def get_game_state(session_id: str, db: Session = Depends(get_db)):
    """取得遊戲目前的階段、隊長、任務 / 回合與等待中的玩家"""
    try:
        game = GameManager.get_game_by_session(db, session_id)
        return _game_state_response(game)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except Exception as e:
        logger.error(f"Failed to get game state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{session_id}/players/{player_id}/faction", response_model=FactionResponse)
def get_faction(session_id: str, player_id: str, db: Session = Depends(get_db)):
    """
    取得玩家的陣營

    返回：
        - is_spy: 是否為間諜
        - known_spies: 間諜可以看到所有間諜，抵抗軍為空列表
    """
    try:
        is_spy, known_spies = GameManager.get_faction(db, session_id, player_id)
        return FactionResponse(player_id=player_id, is_spy=is_spy, known_spies=known_spies)

    except (GameNotFound, PlayerNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get faction: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
