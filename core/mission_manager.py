"""
Mission Manager：執行回合 / 任務推進

職責：
1. 把 advancer 規劃好的 Transition 寫進資料庫（建立 Mission / Round）
2. 把新的 GameState 寫回 Game
. 最後一個任務結束時把遊戲切到 gameOver

不負責 commit：永遠在 InGameManager 的 transaction 內被呼叫
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from models import Game, Mission, Round, EventLog, TBD
from core.game_state import (
    GameState,
    Transition,
    CreateMission,
    CreateRound,
    TeamSelectionInfo,
)
from core.advancer import plan_new_mission, plan_new_round, plan_game_over

logger = logging.getLogger(__name__)


class MissionManager:
    """Mission / Round 生命週期管理器"""

    @staticmethod
    def execute(db: Session, game: Game, transition: Transition) -> TeamSelectionInfo:
        """
        執行一個 Transition

        流程：
        1. 依序執行指令（建立 Mission 或 Round）
        2. 把新狀態寫回 game
        3. flush（交由外層 transaction 處理 commit）

        參數：
            db: SQLAlchemy Session
            game: 要修改的 Game（會被直接修改）
            transition: advancer 規劃的結果

        返回：
            TeamSelectionInfo
        """
        state = transition.state

        for command in transition.commands:
            if isinstance(command, CreateMission):
                MissionManager._create_mission_record(db, game, state, command)
            elif isinstance(command, CreateRound):
                MissionManager._create_round_record(db, game, command)
            else:
                raise TypeError(f"Unknown command {command!r}")

        state.apply_to(game)
        db.flush()

        mission = game.missions[state.mission_index]
        return TeamSelectionInfo(
            session_id=state.session_id,
            current_leader_id=state.current_leader_id,
            current_mission_index=state.mission_index,
            current_round_index=state.round_index,
            mission_size=mission.mission_size,
        )

    @staticmethod
    def create_mission(db: Session, game: Game, state: Optional[GameState] = None) -> TeamSelectionInfo:
        """建立下一個任務（含第一回合），隊長重設為第一位玩家"""
        state = state or GameState.from_game(game)
        return MissionManager.execute(db, game, plan_new_mission(state))

    @staticmethod
    def create_round(db: Session, game: Game, state: Optional[GameState] = None) -> TeamSelectionInfo:
        """在目前任務建立下一回合，隊長換下一位"""
        state = state or GameState.from_game(game)
        return MissionManager.execute(db, game, plan_new_round(state))

    @staticmethod
    def end_game(db: Session, game: Game, state: Optional[GameState] = None) -> List[int]:
        """
        最後一個任務結束：階段切到 gameOver

        返回：
            失敗任務的編號（1-based）
        """
        state = state or GameState.from_game(game)
        plan_game_over(state).state.apply_to(game)

        failed_missions = [mission.mission_index + 1 for mission in game.missions if mission.failed]
        db.add(EventLog(
            game_id=game.id,
            event_type="GAME_OVER",
            data={"failed_missions": failed_missions},
        ))
        db.flush()
        logger.info(f"Game {game.session_id}: game over, failed missions {failed_missions}")
        return failed_missions

    @staticmethod
    def _create_mission_record(db: Session, game: Game, state: GameState, command: CreateMission) -> Mission:
        mission = Mission(
            mission_index=command.mission_index,
            mission_size=command.mission_size,
            failed=False,
            outcome_votes={player_id: TBD for player_id in state.player_ids},
        )
        mission.rounds.append(Round(
            round_index=0,
            leader_id=command.leader_id,
            proposed_team=[],
        ))
        game.missions.append(mission)

        db.add(EventLog(
            game_id=game.id,
            event_type="MISSION_CREATED",
            data={
                "mission_index": command.mission_index,
                "mission_size": command.mission_size,
                "leader_id": command.leader_id,
            }
        ))
        logger.info(
            f"Game {game.session_id}: mission {command.mission_index + 1} created "
            f"(size={command.mission_size}, leader={command.leader_id})"
        )
        return mission

    @staticmethod
    def _create_round_record(db: Session, game: Game, command: CreateRound) -> Round:
        mission = game.missions[command.mission_index]
        round_obj = Round(
            round_index=command.round_index,
            leader_id=command.leader_id,
            proposed_team=[],
        )
        mission.rounds.append(round_obj)

        db.add(EventLog(
            game_id=game.id,
            event_type="ROUND_CREATED",
            data={
                "mission_index": command.mission_index,
                "round_index": command.round_index,
                "leader_id": command.leader_id,
            }
        ))
        logger.info(
            f"Game {game.session_id}: mission {command.mission_index + 1} "
            f"round {command.round_index + 1} created (leader={command.leader_id})"
        )
        return round_obj
