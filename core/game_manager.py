"""
Game Manager：管理 Game 在 lobby 的生命週期與連線綁定

職責：
1. 建立 Game（含建立者 player）
2. 加入 Game
3. 開始遊戲（分配間諜 + 狀態轉換到 factionViewed）
4. 綁定 / 解除 WebSocket 連線
5. 查詢 Game / Player 資訊

遊戲開始後的所有動作由 InGameManager 負責
"""
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
import random
import logging

from models import Game, Player, EventLog, InGameAction
from core.game_state import GameState
from core.state_machine import PhaseStateMachine
from core.locks import with_game_lock, with_player_lock
from core.exceptions import (
    GameNotFound,
    PlayerNotFound,
    InvalidPlayerCount,
    GameNotAcceptingPlayers,
)
from services.naming_service import generate_session_code
from services.mission_size_service import MIN_PLAYERS, MAX_PLAYERS
from services.faction_service import assign_spies, visible_spies
from database import transactional

logger = logging.getLogger(__name__)


class GameManager:
    """Game 生命週期管理器"""

    @staticmethod
    @transactional
    def create_game(db: Session, nickname: str) -> Tuple[Game, Player]:
        """
        建立新遊戲（建立者自動成為第一位玩家）

        流程：
        1. 生成唯一的 session code
        2. 建立 Game
        3. 建立建立者 Player（seat 0）
        4. 記錄事件

        返回：
            (Game, 建立者 Player) tuple
        """
        # 1. 生成唯一的 session code
        session_id = generate_session_code()
        while db.query(Game).filter(Game.session_id == session_id).first():
            session_id = generate_session_code()
            logger.warning(f"Session code collision detected, regenerating: {session_id}")

        # 2. 建立 Game
        game = Game(
            session_id=session_id,
            in_lobby=True,
            current_expected_action=None,
            current_leader_index=0,
            current_mission_index=-1,
            current_round_index=0,
            waiting_for=[],
            spies=[],
        )
        db.add(game)
        db.flush()  # 取得 game.id

        # 3. 建立者
        creator = Player(session_id=session_id, nickname=nickname, seat=0)
        game.players.append(creator)
        db.flush()
        game.creator_id = creator.id

        # 4. 記錄事件
        db.add(EventLog(
            game_id=game.id,
            event_type="GAME_CREATED",
            data={"session_id": session_id, "creator_id": creator.id}
        ))

        logger.info(f"Created game {session_id} by {nickname} ({creator.id})")
        return game, creator

    @staticmethod
    @transactional
    def join_game(db: Session, session_id: str, nickname: str) -> Player:
        """
        加入遊戲

        前置條件：
        - Game 必須存在且還在 lobby
        - 人數未滿 10 人

        異常：
            GameNotFound, GameNotAcceptingPlayers, InvalidPlayerCount
        """
        game = with_game_lock(session_id, db).first()
        if not game:
            raise GameNotFound(session_id)

        if not game.in_lobby:
            raise GameNotAcceptingPlayers(f"Game {session_id} has already started")

        if len(game.players) >= MAX_PLAYERS:
            raise InvalidPlayerCount(f"Game {session_id} is full ({MAX_PLAYERS} players)")

        player = Player(session_id=session_id, nickname=nickname, seat=len(game.players))
        game.players.append(player)
        db.flush()

        logger.info(f"Player {player.id} ({nickname}) joined game {session_id} at seat {player.seat}")
        return player

    @staticmethod
    @transactional
    def start_game(db: Session, session_id: str, rng: Optional[random.Random] = None) -> Game:
        """
        開始遊戲（lobby -> factionViewed）

        前置條件：
        1. Game 必須存在且還在 lobby
        2. 玩家數量 5-10 人

        流程：
        1. 驗證前置條件
        2. 分配間諜
        3. 透過 StateMachine 轉換到 factionViewed，barrier 填滿所有玩家
        4. 記錄事件

        異常：
            GameNotFound, GameNotAcceptingPlayers, InvalidPlayerCount
        """
        # 1. 取得並鎖定 Game
        game = with_game_lock(session_id, db).first()
        if not game:
            raise GameNotFound(session_id)

        if not game.in_lobby:
            raise GameNotAcceptingPlayers(f"Game {session_id} has already started")

        player_ids = game.player_ids
        if not MIN_PLAYERS <= len(player_ids) <= MAX_PLAYERS:
            raise InvalidPlayerCount(
                f"Need {MIN_PLAYERS}-{MAX_PLAYERS} players to start, got {len(player_ids)}"
            )

        # 2. 分配間諜
        game.spies = assign_spies(player_ids, rng)

        # 3. 狀態轉換
        state = GameState.from_game(game)
        state = PhaseStateMachine.transition(state, InGameAction.FACTION_VIEWED).evolve(
            waiting_for=tuple(player_ids)
        )
        state.apply_to(game)
        game.in_lobby = False

        # 4. 記錄事件
        db.add(EventLog(
            game_id=game.id,
            event_type="GAME_STARTED",
            data={"player_count": len(player_ids)}
        ))

        logger.info(f"Started game {session_id} with {len(player_ids)} players")
        return game

    @staticmethod
    @transactional
    def attach_connection(db: Session, session_id: str, player_id: str, connection_id: str) -> Player:
        """
        把新的 WebSocket 連線綁定到玩家（重新連線會覆蓋舊的連線 ID）

        異常：
            PlayerNotFound: 玩家不存在或不屬於這場遊戲
        """
        player = with_player_lock(player_id, db).first()
        if not player or player.session_id != session_id:
            raise PlayerNotFound(player_id)

        player.connection_id = connection_id
        logger.info(f"Player {player_id} connected to game {session_id}")
        return player

    @staticmethod
    @transactional
    def detach_connection(db: Session, connection_id: str) -> None:
        """解除連線綁定（玩家已經重新連線的話什麼都不做）"""
        player = db.query(Player).filter(Player.connection_id == connection_id).first()
        if player:
            player.connection_id = None
            logger.info(f"Player {player.id} disconnected from game {player.session_id}")

    @staticmethod
    def get_game_by_session(db: Session, session_id: str) -> Game:
        """
        透過 session code 取得 Game

        異常：
            GameNotFound: Game 不存在
        """
        game = db.query(Game).filter(Game.session_id == session_id).first()
        if not game:
            raise GameNotFound(session_id)
        return game

    @staticmethod
    def get_player(db: Session, session_id: str, player_id: str) -> Player:
        """
        取得某場遊戲中的玩家

        異常：
            PlayerNotFound: 玩家不存在或不屬於這場遊戲
        """
        player = db.query(Player).filter(
            Player.id == player_id,
            Player.session_id == session_id
        ).first()
        if not player:
            raise PlayerNotFound(player_id)
        return player

    @staticmethod
    def get_faction(db: Session, session_id: str, player_id: str) -> Tuple[bool, List[str]]:
        """
        取得玩家的陣營資訊

        返回：
            (是否為間諜, 此玩家看得到的間諜列表)
        """
        game = GameManager.get_game_by_session(db, session_id)
        GameManager.get_player(db, session_id, player_id)
        spies = list(game.spies or [])
        return player_id in spies, visible_spies(player_id, spies)
