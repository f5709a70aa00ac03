"""
回合 / 任務推進的規劃（純函式）

只決定「下一個狀態」和「要建立什麼」，不碰資料庫；
由 MissionManager.execute 執行回傳的 Transition。
"""
from models import InGameAction
from core.game_state import GameState, Transition, CreateMission, CreateRound
from core.state_machine import PhaseStateMachine
from core.exceptions import InvalidStateTransition
from services.mission_size_service import get_mission_size, MISSIONS_PER_GAME
from services.vote_service import LAST_ROUND_INDEX


def is_last_round(round_index: int) -> bool:
    return round_index >= LAST_ROUND_INDEX


def is_last_mission(mission_index: int) -> bool:
    return mission_index + 1 >= MISSIONS_PER_GAME


def plan_new_mission(state: GameState) -> Transition:
    """
    規劃下一個任務

    效果：
    - mission index +1
    - round index、leader index 歸零（第一位玩家當隊長）
    - 階段切到 proposeTeam

    異常：
        NoMissionsRemaining: 已經沒有下一個任務
    """
    mission_index = state.mission_index + 1
    mission_size = get_mission_size(state.player_count, mission_index)

    new_state = PhaseStateMachine.transition(state, InGameAction.PROPOSE_TEAM).evolve(
        mission_index=mission_index,
        round_index=0,
        leader_index=0,
    )
    command = CreateMission(
        mission_index=mission_index,
        mission_size=mission_size,
        leader_id=new_state.current_leader_id,
    )
    return Transition(state=new_state, commands=(command,))


def plan_new_round(state: GameState) -> Transition:
    """
    規劃同一個任務的下一個回合

    效果：
    - round index +1
    - 隊長換成下一位玩家（超過最後一位就回到第一位）
    - 階段切到 proposeTeam

    異常：
        InvalidStateTransition: 已經是任務的最後一回合（應該改建新任務）
    """
    if is_last_round(state.round_index):
        raise InvalidStateTransition(
            f"Mission {state.mission_index + 1} already used all of its rounds"
        )

    new_state = PhaseStateMachine.transition(state, InGameAction.PROPOSE_TEAM).evolve(
        round_index=state.round_index + 1,
        leader_index=(state.leader_index + 1) % state.player_count,
    )
    command = CreateRound(
        mission_index=new_state.mission_index,
        round_index=new_state.round_index,
        leader_id=new_state.current_leader_id,
    )
    return Transition(state=new_state, commands=(command,))


def plan_game_over(state: GameState) -> Transition:
    """
    最後一個任務已經結束，沒有下一個任務可建立

    階段切到 gameOver，barrier 清空（不再等任何人），後續交給遊戲結算

    異常：
        InvalidStateTransition: 還有任務沒進行
    """
    if not is_last_mission(state.mission_index):
        raise InvalidStateTransition(
            f"Game {state.session_id} still has missions after mission {state.mission_index + 1}"
        )

    new_state = PhaseStateMachine.transition(state, InGameAction.GAME_OVER).evolve(waiting_for=())
    return Transition(state=new_state)
