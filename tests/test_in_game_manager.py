import pytest

from conftest import conn
from models import EventLog, InGameAction, RoundOutcome
from schemas import (
    WaitingForEvent,
    EveryoneViewedFactionEvent,
    ProposeTeamEvent,
    RoundVotesEvent,
    TeamSelectionStartingEvent,
    MissionStartingEvent,
    GameOverEvent,
    ChatLogEvent,
)
from services.mission_size_service import MISSION_SIZES
from core.game_manager import GameManager
from core.in_game_manager import InGameManager
from core.exceptions import (
    AlreadyActedOrNotOwed,
    InvalidTeamSize,
    InvalidVote,
    UnauthorizedActor,
    UnknownActor,
    UnknownPlayerInProposal,
    UnknownSession,
    WrongPhase,
)

PLAYER_COUNT = 5


def everyone_views_faction(db):
    return [InGameManager.faction_viewed(db, conn(index)) for index in range(PLAYER_COUNT)]


def everyone_views_votes(db):
    return [InGameManager.votes_viewed(db, conn(index)) for index in range(PLAYER_COUNT)]


def vote_all(db, rejecting=()):
    return [
        InGameManager.vote_on_team_proposal(
            db, conn(index), "REJECT" if index in rejecting else "APPROVE"
        )
        for index in range(PLAYER_COUNT)
    ]


def reject_round(db, player_ids, leader_index, team_size=2):
    """Leader proposes, everyone rejects; returns the roundVotes event."""
    InGameManager.propose_team(db, conn(leader_index), player_ids[:team_size])
    return vote_all(db, rejecting=range(PLAYER_COUNT))[-1]


@pytest.fixture
def proposing_game(db, started_game):
    """Every player viewed their faction; mission 1 round 1 is waiting for a proposal."""
    everyone_views_faction(db)
    return started_game


class TestFactionViewed:

    def test_waits_for_every_player_then_creates_first_mission(self, db, started_game):
        session_id, player_ids = started_game

        events = everyone_views_faction(db)

        for index, event in enumerate(events[:-1]):
            assert isinstance(event, WaitingForEvent)
            assert event.waiting_for == player_ids[index + 1:]

        final = events[-1]
        assert isinstance(final, EveryoneViewedFactionEvent)
        assert final.session_id == session_id
        assert final.current_leader_id == player_ids[0]
        assert final.current_mission == 1
        assert final.current_round == 1
        assert final.mission_size == 2
        assert final.waiting_for == []

        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_expected_action == InGameAction.PROPOSE_TEAM
        assert game.current_mission_index == 0
        assert game.current_round_index == 0
        assert game.waiting_for == player_ids
        assert len(game.missions) == 1
        assert game.missions[0].rounds[0].leader_id == player_ids[0]
        assert game.missions[0].outcome_votes == {player_id: "TBD" for player_id in player_ids}

    def test_second_confirmation_is_rejected_and_changes_nothing(self, db, started_game):
        session_id, player_ids = started_game
        InGameManager.faction_viewed(db, conn(0))

        with pytest.raises(AlreadyActedOrNotOwed):
            InGameManager.faction_viewed(db, conn(0))

        game = GameManager.get_game_by_session(db, session_id)
        assert game.waiting_for == player_ids[1:]

    def test_unknown_connection(self, db, started_game):
        with pytest.raises(UnknownActor):
            InGameManager.faction_viewed(db, "conn-nobody")

    def test_player_without_game(self, db, started_game):
        session_id, player_ids = started_game
        player = GameManager.get_player(db, session_id, player_ids[0])
        player.session_id = "ZZZZZZ"
        db.commit()

        with pytest.raises(UnknownSession):
            InGameManager.faction_viewed(db, conn(0))

    def test_wrong_phase(self, db, proposing_game):
        with pytest.raises(WrongPhase):
            InGameManager.faction_viewed(db, conn(0))


class TestProposeTeam:

    def test_leader_proposes_team(self, db, proposing_game):
        session_id, player_ids = proposing_game
        team = [player_ids[0], player_ids[3]]

        event = InGameManager.propose_team(db, conn(0), team)

        assert isinstance(event, ProposeTeamEvent)
        assert event.proposed_team == team
        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_expected_action == InGameAction.VOTE_ON_TEAM_PROPOSAL
        assert game.missions[0].rounds[0].proposed_team == team
        assert db.query(EventLog).filter(EventLog.event_type == "TEAM_PROPOSED").count() == 1

    def test_only_leader_may_propose(self, db, proposing_game):
        _, player_ids = proposing_game

        with pytest.raises(UnauthorizedActor):
            InGameManager.propose_team(db, conn(1), player_ids[:2])

    def test_unknown_player_in_team(self, db, proposing_game):
        _, player_ids = proposing_game

        with pytest.raises(UnknownPlayerInProposal) as exc_info:
            InGameManager.propose_team(db, conn(0), [player_ids[0], "made-up"])
        assert exc_info.value.unknown_ids == ["made-up"]

    @pytest.mark.parametrize("team_indices", [[0], [0, 1, 2], [1, 1]])
    def test_team_must_match_mission_size(self, db, proposing_game, team_indices):
        _, player_ids = proposing_game

        with pytest.raises(InvalidTeamSize):
            InGameManager.propose_team(db, conn(0), [player_ids[i] for i in team_indices])

    def test_not_during_voting(self, db, proposing_game):
        _, player_ids = proposing_game
        InGameManager.propose_team(db, conn(0), player_ids[:2])

        with pytest.raises(WrongPhase):
            InGameManager.propose_team(db, conn(0), player_ids[:2])


class TestVoteOnTeamProposal:

    def test_invalid_vote_is_checked_first(self, db, proposing_game):
        with pytest.raises(InvalidVote):
            InGameManager.vote_on_team_proposal(db, conn(0), "MAYBE")

    def test_vote_outside_voting_phase(self, db, proposing_game):
        with pytest.raises(WrongPhase):
            InGameManager.vote_on_team_proposal(db, conn(0), "APPROVE")

    def test_cannot_vote_twice(self, db, proposing_game):
        session_id, player_ids = proposing_game
        InGameManager.propose_team(db, conn(0), player_ids[:2])
        InGameManager.vote_on_team_proposal(db, conn(2), "APPROVE")

        with pytest.raises(AlreadyActedOrNotOwed):
            InGameManager.vote_on_team_proposal(db, conn(2), "REJECT")

        game = GameManager.get_game_by_session(db, session_id)
        round_obj = game.missions[0].rounds[0]
        assert len(round_obj.votes) == 1
        assert round_obj.votes[0].vote_type.value == "APPROVE"

    def test_cannot_confirm_votes_twice(self, db, proposing_game):
        session_id, player_ids = proposing_game
        InGameManager.propose_team(db, conn(0), player_ids[:2])
        vote_all(db)
        InGameManager.votes_viewed(db, conn(3))

        with pytest.raises(AlreadyActedOrNotOwed):
            InGameManager.votes_viewed(db, conn(3))

        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_expected_action == InGameAction.VOTES_VIEWED
        assert game.waiting_for == [p for p in player_ids if p != player_ids[3]]

        # the duplicate did not count towards the barrier
        events = [InGameManager.votes_viewed(db, conn(index)) for index in (0, 1, 2)]
        assert all(isinstance(event, WaitingForEvent) for event in events)
        assert events[-1].waiting_for == [player_ids[4]]
        assert isinstance(InGameManager.votes_viewed(db, conn(4)), MissionStartingEvent)

    def test_unanimous_approval_starts_mission(self, db, proposing_game):
        session_id, player_ids = proposing_game
        team = [player_ids[0], player_ids[1]]
        InGameManager.propose_team(db, conn(0), team)

        events = vote_all(db)

        assert all(isinstance(event, WaitingForEvent) for event in events[:-1])
        result = events[-1]
        assert isinstance(result, RoundVotesEvent)
        assert result.round_outcome == RoundOutcome.APPROVED
        assert result.failed_mission is None
        assert result.concluded_round == 1
        assert result.vote_composition == {player_id: "APPROVE" for player_id in player_ids}

        viewed = everyone_views_votes(db)
        final = viewed[-1]
        assert isinstance(final, MissionStartingEvent)
        assert final.players_on_mission == team

        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_expected_action == InGameAction.VOTE_ON_MISSION_OUTCOME
        assert game.missions[0].rounds[0].outcome == RoundOutcome.APPROVED
        assert game.waiting_for == player_ids

    def test_majority_rejection_starts_new_round_with_next_leader(self, db, proposing_game):
        session_id, player_ids = proposing_game
        InGameManager.propose_team(db, conn(0), player_ids[:2])

        result = vote_all(db, rejecting={0, 2, 4})[-1]

        assert result.round_outcome == RoundOutcome.REJECTED
        assert result.failed_mission is None
        assert result.vote_composition[player_ids[1]] == "APPROVE"
        assert result.vote_composition[player_ids[2]] == "REJECT"

        final = everyone_views_votes(db)[-1]
        assert isinstance(final, TeamSelectionStartingEvent)
        assert final.current_leader_id == player_ids[1]
        assert final.current_mission == 1
        assert final.current_round == 2
        assert final.mission_size == 2

        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_expected_action == InGameAction.PROPOSE_TEAM
        assert game.current_leader_index == 1
        assert [r.leader_id for r in game.missions[0].rounds] == player_ids[:2]

    def test_two_rejections_of_five_approve(self, db, proposing_game):
        _, player_ids = proposing_game
        InGameManager.propose_team(db, conn(0), player_ids[:2])

        result = vote_all(db, rejecting={3, 4})[-1]

        assert result.round_outcome == RoundOutcome.APPROVED


class TestMissionFailure:

    def test_fifth_rejected_round_fails_mission_and_starts_the_next(self, db, proposing_game):
        session_id, player_ids = proposing_game

        for round_index in range(4):
            result = reject_round(db, player_ids, leader_index=round_index)
            assert result.failed_mission is None
            event = everyone_views_votes(db)[-1]
            assert event.current_round == round_index + 2
            assert event.current_leader_id == player_ids[round_index + 1]

        result = reject_round(db, player_ids, leader_index=4)
        assert result.concluded_round == 5
        assert result.failed_mission == 1

        game = GameManager.get_game_by_session(db, session_id)
        # failure is committed together with the tally
        assert game.missions[0].failed is True

        event = everyone_views_votes(db)[-1]
        assert isinstance(event, TeamSelectionStartingEvent)
        assert event.current_mission == 2
        assert event.current_round == 1
        assert event.current_leader_id == player_ids[0]
        assert event.mission_size == 3

        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_mission_index == 1
        assert game.current_round_index == 0
        assert game.current_leader_index == 0
        assert len(game.missions[0].rounds) == 5
        assert len(game.missions[1].rounds) == 1
        assert game.missions[1].failed is False


class TestNewChat:

    def test_chat_is_appended_in_any_phase(self, db, started_game):
        session_id, player_ids = started_game

        InGameManager.new_chat(db, conn(1), "hello")
        event = InGameManager.new_chat(db, conn(3), "hi there")

        assert isinstance(event, ChatLogEvent)
        assert [(entry.player_id, entry.message) for entry in event.chat_log] == [
            (player_ids[1], "hello"),
            (player_ids[3], "hi there"),
        ]
        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_expected_action == InGameAction.FACTION_VIEWED

    def test_chat_requires_known_actor(self, db, started_game):
        with pytest.raises(UnknownActor):
            InGameManager.new_chat(db, "conn-nobody", "hello")


def fail_mission_by_rejections(db, player_ids, mission_index):
    """Reject all five proposals of a mission; returns the last votesViewed event."""
    team_size = MISSION_SIZES[PLAYER_COUNT][mission_index]
    for round_index in range(5):
        result = reject_round(db, player_ids, leader_index=round_index, team_size=team_size)
        event = everyone_views_votes(db)[-1]
    assert result.failed_mission == mission_index + 1
    return event


class TestGameOver:

    def test_last_mission_failing_by_rejections_ends_the_game(self, db, proposing_game):
        session_id, player_ids = proposing_game

        for mission_index in range(4):
            event = fail_mission_by_rejections(db, player_ids, mission_index)
            assert isinstance(event, TeamSelectionStartingEvent)
            assert event.current_mission == mission_index + 2

        event = fail_mission_by_rejections(db, player_ids, 4)

        assert isinstance(event, GameOverEvent)
        assert event.session_id == session_id
        assert event.failed_missions == [1, 2, 3, 4, 5]
        assert event.to_wire()["action"] == "gameOver"

        game = GameManager.get_game_by_session(db, session_id)
        assert game.current_expected_action == InGameAction.GAME_OVER
        assert game.waiting_for == []
        assert len(game.missions) == 5
        assert db.query(EventLog).filter(EventLog.event_type == "GAME_OVER").count() == 1

    def test_no_game_action_is_accepted_after_game_over(self, db, proposing_game):
        session_id, player_ids = proposing_game
        for mission_index in range(5):
            fail_mission_by_rejections(db, player_ids, mission_index)

        with pytest.raises(WrongPhase):
            InGameManager.votes_viewed(db, conn(0))
        with pytest.raises(WrongPhase):
            InGameManager.propose_team(db, conn(0), player_ids[:3])

        # chat is still open
        assert isinstance(InGameManager.new_chat(db, conn(2), "gg"), ChatLogEvent)
