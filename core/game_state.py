"""
GameState：Game 的不可變快照

狀態轉換邏輯（barrier、狀態機、回合/任務推進）都是純函式，
輸入一個 GameState，輸出新的 GameState 和要執行的指令（CreateMission / CreateRound），
真正寫入資料庫由 MissionManager / InGameManager 負責。
"""
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from models import Game, InGameAction


@dataclass(frozen=True)
class GameState:
    session_id: str
    player_ids: Tuple[str, ...]
    phase: Optional[InGameAction]
    leader_index: int
    mission_index: int
    round_index: int
    waiting_for: Tuple[str, ...]

    @classmethod
    def from_game(cls, game: Game) -> "GameState":
        return cls(
            session_id=game.session_id,
            player_ids=tuple(game.player_ids),
            phase=game.current_expected_action,
            leader_index=game.current_leader_index,
            mission_index=game.current_mission_index,
            round_index=game.current_round_index,
            waiting_for=tuple(game.waiting_for or ()),
        )

    @property
    def player_count(self) -> int:
        return len(self.player_ids)

    @property
    def current_leader_id(self) -> str:
        return self.player_ids[self.leader_index]

    def evolve(self, **changes) -> "GameState":
        return replace(self, **changes)

    def apply_to(self, game: Game) -> None:
        """把快照寫回 ORM 物件（不 flush、不 commit）"""
        game.current_expected_action = self.phase
        game.current_leader_index = self.leader_index
        game.current_mission_index = self.mission_index
        game.current_round_index = self.round_index
        # JSON 欄位必須整個重新指定，SQLAlchemy 才會偵測到變更
        game.waiting_for = list(self.waiting_for)


@dataclass(frozen=True)
class CreateMission:
    mission_index: int
    mission_size: int
    leader_id: str


@dataclass(frozen=True)
class CreateRound:
    mission_index: int
    round_index: int
    leader_id: str


Command = Union[CreateMission, CreateRound]


@dataclass(frozen=True)
class Transition:
    state: GameState
    commands: Tuple[Command, ...] = ()


@dataclass(frozen=True)
class TeamSelectionInfo:
    """新回合 / 新任務建立後的摘要"""
    session_id: str
    current_leader_id: str
    current_mission_index: int
    current_round_index: int
    mission_size: int
