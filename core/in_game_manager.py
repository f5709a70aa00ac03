"""
In-Game Manager：處理遊戲進行中的所有動作

職責：
1. 驗證動作合法性（連線是誰、在哪場遊戲、現在是不是這個階段、是不是隊長）
2. 透過 barrier 追蹤「還在等誰」
3. barrier 歸零時計票、推進回合 / 任務
4. 回傳要廣播的事件

每個動作都是一個 transaction（@transactional），
Game、Mission、Round 的修改一起 commit，不會只存一半。
"""
from typing import List, Tuple
import logging

from sqlalchemy.orm import Session

from models import Game, Player, Mission, Round, RoundVote, ChatMessage, EventLog, InGameAction, RoundOutcome
from schemas import (
    GameEvent,
    WaitingForEvent,
    EveryoneViewedFactionEvent,
    TeamSelectionStartingEvent,
    ProposeTeamEvent,
    RoundVotesEvent,
    MissionStartingEvent,
    GameOverEvent,
    ChatEntry,
    ChatLogEvent,
)
from core.game_state import GameState, TeamSelectionInfo
from core.state_machine import PhaseStateMachine
from core.barrier import mark_done
from core.advancer import is_last_round, is_last_mission
from core.mission_manager import MissionManager
from core.locks import with_game_lock
from core.exceptions import (
    UnknownActor,
    UnknownSession,
    UnauthorizedActor,
    UnknownPlayerInProposal,
    InvalidTeamSize,
)
from services.vote_service import (
    parse_vote,
    resolve_round_outcome,
    failed_mission_number,
    compose_votes,
)
from database import transactional

logger = logging.getLogger(__name__)


def _resolve_actor(db: Session, connection_id: str, action: str) -> Player:
    player = db.query(Player).filter(Player.connection_id == connection_id).first()
    if not player:
        raise UnknownActor(action)
    return player


def _resolve_game(db: Session, player: Player, action: str) -> Game:
    game = with_game_lock(player.session_id, db).first()
    if not game:
        raise UnknownSession(action, player.session_id)
    return game


def _load(db: Session, connection_id: str, action: str) -> Tuple[Player, Game, GameState]:
    player = _resolve_actor(db, connection_id, action)
    game = _resolve_game(db, player, action)
    return player, game, GameState.from_game(game)


def _current_mission(game: Game) -> Mission:
    return game.missions[game.current_mission_index]


def _current_round(game: Game) -> Round:
    return _current_mission(game).rounds[game.current_round_index]


def _waiting_for_event(state: GameState) -> WaitingForEvent:
    return WaitingForEvent(session_id=state.session_id, waiting_for=list(state.waiting_for))


def _team_selection_fields(info: TeamSelectionInfo) -> dict:
    return dict(
        session_id=info.session_id,
        waiting_for=[],
        current_leader_id=info.current_leader_id,
        current_mission=info.current_mission_index + 1,
        current_round=info.current_round_index + 1,
        mission_size=info.mission_size,
    )


class InGameManager:
    """遊戲內動作處理器（每個方法名稱對應一個客戶端動作）"""

    @staticmethod
    @transactional
    def faction_viewed(db: Session, connection_id: str) -> GameEvent:
        """
        玩家確認已看過自己的陣營

        前置條件：
        - 階段必須是 factionViewed
        - 玩家在這個階段還沒確認過

        流程：
        1. barrier 移除此玩家
        2. 還有人沒確認 → 回傳 waitingFor
        3. 所有人都確認 → 建立新任務，回傳 everyoneViewedFaction

        異常：
            UnknownActor, UnknownSession, WrongPhase, AlreadyActedOrNotOwed
        """
        action = "confirm viewing your faction"
        player, game, state = _load(db, connection_id, action)
        PhaseStateMachine.require(state, InGameAction.FACTION_VIEWED, action)

        state, num_waiting = mark_done(state, player.id, action)
        if num_waiting:
            state.apply_to(game)
            return _waiting_for_event(state)

        info = MissionManager.create_mission(db, game, state)
        logger.info(f"Game {game.session_id}: everyone viewed their faction")
        return EveryoneViewedFactionEvent(**_team_selection_fields(info))

    @staticmethod
    @transactional
    def propose_team(db: Session, connection_id: str, proposed_team: List[str]) -> GameEvent:
        """
        隊長提出出任務的隊伍

        前置條件：
        - 階段必須是 proposeTeam
        - 只有目前的隊長可以提案
        - 隊伍成員都必須是這場遊戲的玩家，且人數等於任務人數、不重複

        效果：
        - 寫入目前回合的 proposed_team
        - 階段切到 voteOnTeamProposal

        異常：
            UnknownActor, UnknownSession, WrongPhase, UnauthorizedActor,
            UnknownPlayerInProposal, InvalidTeamSize
        """
        action = "propose a team"
        player, game, state = _load(db, connection_id, action)
        PhaseStateMachine.require(state, InGameAction.PROPOSE_TEAM, action)

        if player.id != state.current_leader_id:
            raise UnauthorizedActor(action, player_id=player.id)

        unknown = [member for member in proposed_team if member not in state.player_ids]
        if unknown:
            raise UnknownPlayerInProposal(unknown)

        mission = _current_mission(game)
        if len(set(proposed_team)) != len(proposed_team) or len(proposed_team) != mission.mission_size:
            raise InvalidTeamSize(
                f"Mission {state.mission_index + 1} needs {mission.mission_size} distinct players, "
                f"got {len(proposed_team)}"
            )

        round_obj = _current_round(game)
        round_obj.proposed_team = list(proposed_team)

        state = PhaseStateMachine.transition(state, InGameAction.VOTE_ON_TEAM_PROPOSAL)
        state.apply_to(game)

        db.add(EventLog(
            game_id=game.id,
            event_type="TEAM_PROPOSED",
            data={
                "mission_index": state.mission_index,
                "round_index": state.round_index,
                "leader_id": player.id,
                "proposed_team": list(proposed_team),
            }
        ))
        logger.info(f"Game {game.session_id}: leader {player.id} proposed {proposed_team}")

        return ProposeTeamEvent(session_id=state.session_id, proposed_team=list(proposed_team))

    @staticmethod
    @transactional
    def vote_on_team_proposal(db: Session, connection_id: str, vote_type) -> GameEvent:
        """
        對隊伍提案投票

        前置條件：
        - 投票必須是 APPROVE / REJECT（最先檢查）
        - 階段必須是 voteOnTeamProposal
        - 每位玩家每回合只能投一次（由 barrier 保證）

        流程：
        1. barrier 移除此玩家，記錄投票
        2. 還有人沒投 → 回傳 waitingFor
        3. 所有人都投了：
           - 計票（否決票 >= 一半 → REJECTED）
           - 第 5 次提案仍被否決 → 任務失敗，在同一個 transaction 寫入
           - 階段切到 votesViewed
           - 回傳 roundVotes

        異常：
            InvalidVote, UnknownActor, UnknownSession, WrongPhase, AlreadyActedOrNotOwed
        """
        action = "vote on the team proposal"
        vote = parse_vote(vote_type)
        player, game, state = _load(db, connection_id, action)
        PhaseStateMachine.require(state, InGameAction.VOTE_ON_TEAM_PROPOSAL, action)

        state, num_waiting = mark_done(state, player.id, action)

        round_obj = _current_round(game)
        round_obj.votes.append(RoundVote(player_id=player.id, vote_type=vote))

        if num_waiting:
            state.apply_to(game)
            return _waiting_for_event(state)

        # 所有人都投票了
        votes = round_obj.votes_by_player()
        outcome = resolve_round_outcome(votes, state.player_count)
        round_obj.outcome = outcome

        failed_mission = failed_mission_number(state.mission_index, state.round_index, outcome)
        if failed_mission is not None:
            _current_mission(game).failed = True
            logger.info(
                f"Game {game.session_id}: mission {failed_mission} failed after "
                f"{state.round_index + 1} rejected proposals"
            )

        state = PhaseStateMachine.transition(state, InGameAction.VOTES_VIEWED)
        state.apply_to(game)

        vote_composition = compose_votes(state.player_ids, votes)
        db.add(EventLog(
            game_id=game.id,
            event_type="ROUND_RESOLVED",
            data={
                "mission_index": state.mission_index,
                "round_index": state.round_index,
                "votes": vote_composition,
                "outcome": outcome.value,
                "failed_mission": failed_mission,
            }
        ))
        logger.info(
            f"Game {game.session_id}: mission {state.mission_index + 1} "
            f"round {state.round_index + 1} {outcome.value}"
        )

        return RoundVotesEvent(
            session_id=state.session_id,
            waiting_for=[],
            vote_composition=vote_composition,
            round_outcome=outcome,
            concluded_round=state.round_index + 1,
            failed_mission=failed_mission,
        )

    @staticmethod
    @transactional
    def votes_viewed(db: Session, connection_id: str) -> GameEvent:
        """
        玩家確認已看過投票結果

        所有人都確認後，依剛結束的回合結果決定下一步：
        - REJECTED 且已是第 5 回合 → 建立新任務（隊長回到第一位）；
          已經是最後一個任務 → 遊戲結束（gameOver）
        - REJECTED → 同任務建立新回合（隊長換下一位）
        - APPROVED → 階段切到 voteOnMissionOutcome，回傳 missionStarting

        異常：
            UnknownActor, UnknownSession, WrongPhase, AlreadyActedOrNotOwed
        """
        action = "confirm viewing the votes"
        player, game, state = _load(db, connection_id, action)
        PhaseStateMachine.require(state, InGameAction.VOTES_VIEWED, action)

        state, num_waiting = mark_done(state, player.id, action)
        if num_waiting:
            state.apply_to(game)
            return _waiting_for_event(state)

        round_obj = _current_round(game)
        if round_obj.outcome == RoundOutcome.REJECTED:
            if is_last_round(state.round_index) and is_last_mission(state.mission_index):
                failed_missions = MissionManager.end_game(db, game, state)
                return GameOverEvent(session_id=state.session_id, failed_missions=failed_missions)
            if is_last_round(state.round_index):
                info = MissionManager.create_mission(db, game, state)
            else:
                info = MissionManager.create_round(db, game, state)
            return TeamSelectionStartingEvent(**_team_selection_fields(info))

        state = PhaseStateMachine.transition(state, InGameAction.VOTE_ON_MISSION_OUTCOME)
        state.apply_to(game)
        logger.info(
            f"Game {game.session_id}: mission {state.mission_index + 1} starting "
            f"with {round_obj.proposed_team}"
        )
        return MissionStartingEvent(
            session_id=state.session_id,
            waiting_for=[],
            players_on_mission=list(round_obj.proposed_team),
        )

    @staticmethod
    @transactional
    def new_chat(db: Session, connection_id: str, message: str) -> GameEvent:
        """
        新增聊天訊息（不受階段限制，也不經過 barrier）

        發言者一律以連線對應的玩家為準
        """
        action = "send a chat message"
        player = _resolve_actor(db, connection_id, action)
        game = _resolve_game(db, player, action)

        game.chat_log.append(ChatMessage(player_id=player.id, message=message))
        db.flush()

        return ChatLogEvent(
            session_id=game.session_id,
            chat_log=[
                ChatEntry(player_id=entry.player_id, message=entry.message)
                for entry in game.chat_log
            ],
        )
