import pytest

from models import InGameAction
from core.advancer import plan_new_mission, plan_new_round, plan_game_over, is_last_round, is_last_mission
from core.game_state import GameState, CreateMission, CreateRound
from core.exceptions import InvalidStateTransition, NoMissionsRemaining

PLAYERS = ("p0", "p1", "p2", "p3", "p4")


def make_state(**overrides) -> GameState:
    values = dict(
        session_id="ABCDEF",
        player_ids=PLAYERS,
        phase=InGameAction.VOTES_VIEWED,
        leader_index=2,
        mission_index=1,
        round_index=2,
        waiting_for=PLAYERS,
    )
    values.update(overrides)
    return GameState(**values)


def test_first_mission_from_faction_view():
    state = make_state(phase=InGameAction.FACTION_VIEWED, mission_index=-1, round_index=0, leader_index=0)

    transition = plan_new_mission(state)

    assert transition.state.mission_index == 0
    assert transition.state.phase == InGameAction.PROPOSE_TEAM
    assert transition.commands == (CreateMission(mission_index=0, mission_size=2, leader_id="p0"),)


def test_new_mission_resets_round_and_leader():
    transition = plan_new_mission(make_state(round_index=4, leader_index=4))

    new_state = transition.state
    assert new_state.mission_index == 2
    assert new_state.round_index == 0
    assert new_state.leader_index == 0
    assert new_state.current_leader_id == "p0"
    assert transition.commands[0].mission_size == 2


def test_new_mission_after_the_last_one_is_refused():
    with pytest.raises(NoMissionsRemaining):
        plan_new_mission(make_state(mission_index=4))


def test_new_round_rotates_leader():
    transition = plan_new_round(make_state())

    assert transition.state.round_index == 3
    assert transition.state.leader_index == 3
    assert transition.state.phase == InGameAction.PROPOSE_TEAM
    assert transition.commands == (CreateRound(mission_index=1, round_index=3, leader_id="p3"),)


def test_new_round_leader_wraps_around():
    transition = plan_new_round(make_state(leader_index=4, round_index=1))

    assert transition.state.leader_index == 0
    assert transition.commands[0].leader_id == "p0"


def test_no_sixth_round():
    assert is_last_round(4)
    assert not is_last_round(3)
    with pytest.raises(InvalidStateTransition):
        plan_new_round(make_state(round_index=4))


def test_planning_requires_a_legal_phase():
    with pytest.raises(InvalidStateTransition):
        plan_new_round(make_state(phase=InGameAction.PROPOSE_TEAM))


def test_is_last_mission():
    assert not is_last_mission(3)
    assert is_last_mission(4)


def test_game_over_after_the_last_mission():
    transition = plan_game_over(make_state(mission_index=4, round_index=4))

    assert transition.state.phase == InGameAction.GAME_OVER
    assert transition.state.waiting_for == ()
    assert transition.commands == ()


def test_game_over_needs_the_last_mission():
    with pytest.raises(InvalidStateTransition):
        plan_game_over(make_state(mission_index=3, round_index=4))
