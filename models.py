"""
資料模型（SQLAlchemy ORM）

Game ─┬─ Player（依 seat 排序，順序決定隊長輪替）
      ├─ Mission ── Round ── RoundVote
      ├─ ChatMessage
      └─ EventLog
"""
import enum
import uuid

from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Enum,
    JSON,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


# 票尚未投出時的標記
TBD = "TBD"


class InGameAction(str, enum.Enum):
    """遊戲目前等待的動作（唯一的階段指標）"""
    FACTION_VIEWED = "factionViewed"
    PROPOSE_TEAM = "proposeTeam"
    VOTE_ON_TEAM_PROPOSAL = "voteOnTeamProposal"
    VOTES_VIEWED = "votesViewed"
    VOTE_ON_MISSION_OUTCOME = "voteOnMissionOutcome"
    # 最後一個任務結束，交給遊戲結算
    GAME_OVER = "gameOver"


class VoteType(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class RoundOutcome(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Game(Base):
    """一場遊戲（以 session_id 識別）"""
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(16), unique=True, nullable=False, index=True)
    creator_id = Column(String(36), nullable=True)

    in_lobby = Column(Boolean, nullable=False, default=True)
    current_expected_action = Column(Enum(InGameAction), nullable=True)

    current_leader_index = Column(Integer, nullable=False, default=0)
    # 從 -1 開始，建立第一個任務就是把 index 推進到 0
    current_mission_index = Column(Integer, nullable=False, default=-1)
    current_round_index = Column(Integer, nullable=False, default=0)

    waiting_for = Column(JSON, nullable=False, default=list)   # playerIDs
    spies = Column(JSON, nullable=False, default=list)         # playerIDs

    # 樂觀鎖：兩個動作讀到同一版本時，後 commit 的會得到 StaleDataError
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __mapper_args__ = {"version_id_col": version}

    players = relationship(
        "Player", back_populates="game", order_by="Player.seat"
    )
    missions = relationship(
        "Mission", back_populates="game", order_by="Mission.mission_index"
    )
    chat_log = relationship("ChatMessage", order_by="ChatMessage.id")

    @property
    def player_ids(self):
        return [player.id for player in self.players]


class Player(Base):
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=_new_id)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False)
    session_id = Column(String(16), nullable=False, index=True)
    connection_id = Column(String(64), unique=True, nullable=True)
    nickname = Column(String(32), nullable=False)
    seat = Column(Integer, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    game = relationship("Game", back_populates="players")


class Mission(Base):
    __tablename__ = "missions"

    id = Column(String(36), primary_key=True, default=_new_id)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False)
    mission_index = Column(Integer, nullable=False)
    mission_size = Column(Integer, nullable=False)
    failed = Column(Boolean, nullable=False, default=False)
    # 任務結果投票（由任務執行階段使用），playerID -> TBD
    outcome_votes = Column(JSON, nullable=False, default=dict)

    game = relationship("Game", back_populates="missions")
    rounds = relationship(
        "Round", back_populates="mission", order_by="Round.round_index"
    )

    __table_args__ = (
        UniqueConstraint("game_id", "mission_index", name="uq_mission_index"),
    )


class Round(Base):
    """一次隊伍提案 + 投票"""
    __tablename__ = "rounds"

    id = Column(String(36), primary_key=True, default=_new_id)
    mission_id = Column(String(36), ForeignKey("missions.id"), nullable=False)
    round_index = Column(Integer, nullable=False)
    leader_id = Column(String(36), nullable=False)
    proposed_team = Column(JSON, nullable=False, default=list)
    outcome = Column(Enum(RoundOutcome), nullable=True)

    mission = relationship("Mission", back_populates="rounds")
    votes = relationship("RoundVote", back_populates="round", order_by="RoundVote.id")

    __table_args__ = (
        UniqueConstraint("mission_id", "round_index", name="uq_round_index"),
    )

    def votes_by_player(self):
        return {vote.player_id: vote.vote_type for vote in self.votes}


class RoundVote(Base):
    """每位玩家每回合一票"""
    __tablename__ = "round_votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False)
    player_id = Column(String(36), nullable=False)
    vote_type = Column(Enum(VoteType), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    round = relationship("Round", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="uq_round_vote"),
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False)
    player_id = Column(String(36), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False)
    event_type = Column(String(50), nullable=False)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
