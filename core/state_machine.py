"""
狀態機：集中管理 Game 的階段轉換

階段流程：
    (lobby) ─► factionViewed ─► proposeTeam ─► voteOnTeamProposal ─► votesViewed
                    ▲               ▲                                    │
                    │               └──── 提案被否決（新回合 / 新任務）◄──┤
                    │                                                    ▼
                    └──────────── voteOnMissionOutcome（外部處理）◄── 提案通過

    最後一個任務結束（votesViewed 或 voteOnMissionOutcome）─► gameOver（終止，交給遊戲結算）

所有階段變更都必須經過 PhaseStateMachine.transition，不允許直接改 phase
"""
from typing import Dict, FrozenSet, Optional

from models import InGameAction
from core.game_state import GameState
from core.exceptions import InvalidStateTransition, WrongPhase

# None 代表還在 lobby
ALLOWED_TRANSITIONS: Dict[Optional[InGameAction], FrozenSet[InGameAction]] = {
    None: frozenset({InGameAction.FACTION_VIEWED}),
    InGameAction.FACTION_VIEWED: frozenset({InGameAction.PROPOSE_TEAM}),
    InGameAction.PROPOSE_TEAM: frozenset({InGameAction.VOTE_ON_TEAM_PROPOSAL}),
    InGameAction.VOTE_ON_TEAM_PROPOSAL: frozenset({InGameAction.VOTES_VIEWED}),
    InGameAction.VOTES_VIEWED: frozenset({
        InGameAction.PROPOSE_TEAM,
        InGameAction.VOTE_ON_MISSION_OUTCOME,
        InGameAction.GAME_OVER,
    }),
    InGameAction.VOTE_ON_MISSION_OUTCOME: frozenset({
        InGameAction.FACTION_VIEWED,
        InGameAction.GAME_OVER,
    }),
    InGameAction.GAME_OVER: frozenset(),
}


class PhaseStateMachine:
    """Game 階段狀態機"""

    @staticmethod
    def can_transition(current: Optional[InGameAction], target: InGameAction) -> bool:
        return target in ALLOWED_TRANSITIONS.get(current, frozenset())

    @staticmethod
    def transition(state: GameState, target: InGameAction) -> GameState:
        """
        回傳切換到 target 階段後的新 GameState

        異常：
            InvalidStateTransition: 目前階段不能切換到 target
        """
        if not PhaseStateMachine.can_transition(state.phase, target):
            current = state.phase.value if state.phase else "lobby"
            raise InvalidStateTransition(
                f"Game {state.session_id} cannot go from '{current}' to '{target.value}'"
            )
        return state.evolve(phase=target)

    @staticmethod
    def require(state: GameState, expected: InGameAction, action: str) -> None:
        """
        確認遊戲目前等待的正是這個動作

        異常：
            WrongPhase: 階段不符
        """
        if state.phase != expected:
            raise WrongPhase(action, expected=state.phase)
