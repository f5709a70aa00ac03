"""
Pydantic schemas

- REST：lobby（建立 / 加入 / 開始）與狀態查詢
- WebSocket 收到的動作內容
- WebSocket 廣播的事件（欄位名稱使用前端的 camelCase）
"""
import enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import InGameAction, RoundOutcome


# ============ REST ============

class GameCreate(BaseModel):
    nickname: str = Field(..., min_length=1, max_length=32)


class PlayerJoin(BaseModel):
    nickname: str = Field(..., min_length=1, max_length=32)


class PlayerResponse(BaseModel):
    player_id: str
    session_id: str
    seat: int


class GameStateResponse(BaseModel):
    session_id: str
    in_lobby: bool
    phase: Optional[InGameAction] = None
    player_ids: List[str]
    current_leader_id: Optional[str] = None
    current_mission_index: int
    current_round_index: int
    mission_size: Optional[int] = None
    waiting_for: List[str]


class FactionResponse(BaseModel):
    player_id: str
    is_spy: bool
    known_spies: List[str]


# ============ WebSocket 收到的動作 ============

class ClientAction(str, enum.Enum):
    FACTION_VIEWED = "factionViewed"
    PROPOSE_TEAM = "proposeTeam"
    VOTE_ON_TEAM_PROPOSAL = "voteOnTeamProposal"
    VOTES_VIEWED = "votesViewed"
    NEW_CHAT = "newChat"


class ProposeTeamFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    proposed_team: List[str] = Field(..., alias="proposedTeam")


class VoteFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # 不限制為 enum：不合法的值要由 VoteService 回報 InvalidVote
    vote_type: Any = Field(None, alias="voteType")


class ChatFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=500)
    message_from: Optional[str] = Field(None, alias="messageFrom")


# ============ WebSocket 廣播的事件 ============

class GameEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    session_id: str = Field(..., alias="sessionID")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class WaitingForEvent(GameEvent):
    action: Literal["waitingFor"] = "waitingFor"
    waiting_for: List[str] = Field(..., alias="waitingFor")


class TeamSelectionEvent(GameEvent):
    """新回合開始：隊長、任務 / 回合編號（1-based）、隊伍人數"""
    waiting_for: List[str] = Field(default_factory=list, alias="waitingFor")
    current_leader_id: str = Field(..., alias="currentLeaderID")
    current_mission: int = Field(..., alias="currentMission")
    current_round: int = Field(..., alias="currentRound")
    mission_size: int = Field(..., alias="missionSize")


class EveryoneViewedFactionEvent(TeamSelectionEvent):
    action: Literal["everyoneViewedFaction"] = "everyoneViewedFaction"


class TeamSelectionStartingEvent(TeamSelectionEvent):
    action: Literal["teamSelectionStarting"] = "teamSelectionStarting"


class ProposeTeamEvent(GameEvent):
    action: Literal["proposeTeam"] = "proposeTeam"
    proposed_team: List[str] = Field(..., alias="proposedTeam")


class RoundVotesEvent(GameEvent):
    action: Literal["roundVotes"] = "roundVotes"
    waiting_for: List[str] = Field(default_factory=list, alias="waitingFor")
    vote_composition: Dict[str, str] = Field(..., alias="voteComposition")
    round_outcome: RoundOutcome = Field(..., alias="roundOutcome")
    concluded_round: int = Field(..., alias="concludedRound")
    failed_mission: Optional[int] = Field(None, alias="failedMission")


class MissionStartingEvent(GameEvent):
    action: Literal["missionStarting"] = "missionStarting"
    waiting_for: List[str] = Field(default_factory=list, alias="waitingFor")
    players_on_mission: List[str] = Field(..., alias="playersOnMission")


class ChatEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    player_id: str = Field(..., alias="playerID")
    message: str


class ChatLogEvent(GameEvent):
    action: Literal["chatLog"] = "chatLog"
    chat_log: List[ChatEntry] = Field(..., alias="chatLog")


class GameOverEvent(GameEvent):
    """最後一個任務結束，交給遊戲結算"""
    action: Literal["gameOver"] = "gameOver"
    waiting_for: List[str] = Field(default_factory=list, alias="waitingFor")
    failed_missions: List[int] = Field(default_factory=list, alias="failedMissions")
