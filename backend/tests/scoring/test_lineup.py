import pytest

from scorer.schemas import MatchData
from scorer.scoring.lineup import MatchSetup
from scorer.scoring.pickleball import BOTTOM, DOUBLES, LEFT, RIGHT, TOP, MatchEngine
from scorer.scoring.positions import derive_positions
from scorer.services.match_source import DEMO_MATCHES
from scorer.services.validation import ValidationError


def _setup(match_id="MATCH-002"):
    return MatchSetup(MatchData.model_validate(DEMO_MATCHES[match_id]))


def _layout(players):
    return [(p.name, p.position) for p in players]


def test_default_doubles_lineup_left_serving():
    setup = _setup()
    setup.select_serving_team(LEFT)

    lineup = setup.build_lineup()

    assert lineup.serving_team == LEFT
    assert _layout(lineup.left) == [("Mike Wilson", TOP), ("Lisa Chen", BOTTOM)]
    assert _layout(lineup.right) == [("David Brown", TOP), ("Emma Davis", BOTTOM)]
    assert lineup.left[0].player_id == "P101"


def test_default_doubles_lineup_right_serving_puts_server_two_on_top():
    setup = _setup()
    setup.select_serving_team(RIGHT)

    lineup = setup.build_lineup()

    assert lineup.serving_team == RIGHT
    assert _layout(lineup.left) == [("Mike Wilson", TOP), ("Lisa Chen", BOTTOM)]
    assert _layout(lineup.right) == [("David Brown", BOTTOM), ("Emma Davis", TOP)]


def test_serving_team_defaults_to_left():
    setup = _setup()
    assert setup.ready is False
    assert setup.build_lineup().serving_team == LEFT


def test_singles_lineup_has_no_positions():
    lineup = _setup("MATCH-001").build_lineup()
    assert _layout(lineup.left) == [("John Smith", None)]
    assert _layout(lineup.right) == [("Sarah Johnson", None)]


def test_manual_pick_left_server():
    setup = _setup()
    setup.select_player(LEFT, "Mike Wilson")
    setup.select_player(RIGHT, "Emma Davis")

    assert setup.picks_complete
    assert setup.serving_team == LEFT
    lineup = setup.build_lineup()
    assert _layout(lineup.left) == [("Lisa Chen", TOP), ("Mike Wilson", BOTTOM)]
    assert _layout(lineup.right) == [("Emma Davis", TOP), ("David Brown", BOTTOM)]

    engine = MatchEngine()
    engine.load("MATCH-002", DOUBLES)
    engine.start(lineup)
    positions = derive_positions(engine.state)
    assert positions.server.name == "Mike Wilson"
    assert positions.receiver.name == "Emma Davis"


def test_manual_pick_right_server():
    setup = _setup()
    setup.select_player(RIGHT, "David Brown")
    setup.select_player(LEFT, "Lisa Chen")

    lineup = setup.build_lineup()

    assert lineup.serving_team == RIGHT
    assert _layout(lineup.left) == [("Mike Wilson", TOP), ("Lisa Chen", BOTTOM)]
    assert _layout(lineup.right) == [("Emma Davis", BOTTOM), ("David Brown", TOP)]


def test_third_pick_starts_selection_over():
    setup = _setup()
    setup.select_player(LEFT, "Mike Wilson")
    setup.select_player(RIGHT, "Emma Davis")

    setup.select_player(RIGHT, "David Brown")

    assert setup.server.name == "David Brown"
    assert setup.receiver is None
    assert setup.serving_team == RIGHT


def test_same_side_pick_replaces_server():
    setup = _setup()
    setup.select_player(LEFT, "Mike Wilson")
    setup.select_player(LEFT, "Lisa Chen")

    assert setup.server.name == "Lisa Chen"
    assert setup.receiver is None


def test_unknown_player_is_rejected():
    setup = _setup()
    with pytest.raises(ValidationError):
        setup.select_player(LEFT, "David Brown")
    with pytest.raises(ValidationError):
        setup.select_player(RIGHT, "Nobody")


def test_switch_sides_swaps_teams_and_clears_picks():
    setup = _setup()
    setup.select_player(LEFT, "Mike Wilson")
    setup.select_player(RIGHT, "Emma Davis")

    setup.switch_sides()

    assert setup.team_assignment == {"A": RIGHT, "B": LEFT}
    assert setup.serving_team is None
    assert setup.server is None and setup.receiver is None
    assert [p.name for p in setup.roster(LEFT)] == ["David Brown", "Emma Davis"]
    lineup = setup.build_lineup()
    assert _layout(lineup.left) == [("David Brown", TOP), ("Emma Davis", BOTTOM)]


def test_choosing_other_serving_team_drops_picks():
    setup = _setup()
    setup.select_player(LEFT, "Mike Wilson")
    setup.select_player(RIGHT, "Emma Davis")

    setup.select_serving_team(RIGHT)

    assert setup.server is None
    assert setup.serving_team == RIGHT
    assert _layout(setup.build_lineup().right) == [
        ("David Brown", BOTTOM),
        ("Emma Davis", TOP),
    ]


def test_incomplete_pick_uses_roster_order():
    setup = _setup()
    setup.select_player(LEFT, "Lisa Chen")

    lineup = setup.build_lineup()

    assert _layout(lineup.left) == [("Mike Wilson", TOP), ("Lisa Chen", BOTTOM)]


def test_pick_remembers_side_when_names_repeat_across_teams():
    data = dict(DEMO_MATCHES["MATCH-002"])
    data["players"] = [
        dict(p, name="Mike Wilson") if p["playerId"] == "P202" else p
        for p in data["players"]
    ]
    setup = MatchSetup(MatchData.model_validate(data))

    setup.select_player(RIGHT, "Mike Wilson")
    setup.select_serving_team(RIGHT)
    setup.select_player(LEFT, "Lisa Chen")

    assert setup.serving_team == RIGHT
    assert setup.picks_complete
    lineup = setup.build_lineup()
    assert lineup.serving_team == RIGHT
    assert _layout(lineup.right) == [("David Brown", BOTTOM), ("Mike Wilson", TOP)]
    assert lineup.right[1].player_id == "P202"
    assert _layout(lineup.left) == [("Mike Wilson", TOP), ("Lisa Chen", BOTTOM)]
