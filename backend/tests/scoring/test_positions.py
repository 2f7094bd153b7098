import pytest

from scorer.scoring.pickleball import (
    BOTTOM,
    DOUBLES,
    LEFT,
    RIGHT,
    SINGLES,
    TOP,
    GameState,
    Lineup,
    MatchEngine,
    Player,
)
from scorer.scoring.positions import (
    court_layout,
    derive_positions,
    score_display,
    server_name,
    singles_positions,
    starting_server_info,
)


def _engine(mode, lineup):
    engine = MatchEngine()
    engine.load("MATCH-X", mode)
    engine.start(lineup)
    return engine


def _singles(serving_team=LEFT):
    return _engine(
        SINGLES,
        Lineup(
            left=[Player("John Smith", "P001")],
            right=[Player("Sarah Johnson", "P002")],
            serving_team=serving_team,
        ),
    )


def _doubles(serving_team=LEFT):
    if serving_team == LEFT:
        right = [Player("David Brown", "P201", TOP), Player("Emma Davis", "P202", BOTTOM)]
    else:
        right = [Player("David Brown", "P201", BOTTOM), Player("Emma Davis", "P202", TOP)]
    return _engine(
        DOUBLES,
        Lineup(
            left=[Player("Mike Wilson", "P101", TOP), Player("Lisa Chen", "P102", BOTTOM)],
            right=right,
            serving_team=serving_team,
        ),
    )


@pytest.mark.parametrize(
    "team, score, expected",
    [
        (LEFT, 0, (BOTTOM, TOP)),
        (LEFT, 1, (TOP, BOTTOM)),
        (RIGHT, 0, (TOP, BOTTOM)),
        (RIGHT, 3, (BOTTOM, TOP)),
    ],
)
def test_singles_positions_are_diagonal(team, score, expected):
    assert singles_positions(team, score) == expected


def test_singles_derivation_follows_server_score():
    engine = _singles()
    positions = derive_positions(engine.state)
    assert positions.server.court_code == "CLB"
    assert positions.receiver.court_code == "CRT"
    assert positions.server.name == "John Smith"

    engine.apply_touch(LEFT)
    positions = derive_positions(engine.state)
    assert positions.server.court_code == "CLT"
    assert positions.receiver.court_code == "CRB"


def test_singles_right_serving_even_score():
    engine = _singles(RIGHT)
    positions = derive_positions(engine.state)
    assert (positions.server.team, positions.server.position) == (RIGHT, TOP)
    assert (positions.receiver.team, positions.receiver.position) == (LEFT, BOTTOM)


def test_doubles_first_server_is_index_one_cross_court():
    positions = derive_positions(_doubles().state)

    assert positions.server.index == 1
    assert positions.server.name == "Lisa Chen"
    assert positions.server.court_code == "CLB"
    assert positions.receiver.name == "David Brown"
    assert positions.receiver.court_code == "CRT"


def test_doubles_server_follows_swaps_after_point():
    engine = _doubles()
    engine.apply_touch(LEFT)

    positions = derive_positions(engine.state)
    assert positions.server.name == "Lisa Chen"
    assert positions.server.position == TOP
    assert positions.receiver.position == BOTTOM
    assert positions.receiver.name == "Emma Davis"


def test_active_server_override_changes_highlight_not_display():
    engine = _doubles()
    engine.adjust_score(5, 3, LEFT, 1, 2)

    positions = derive_positions(engine.state)
    assert score_display(engine.state) == "5 - 3 - 1"
    assert positions.server.index == 1

    engine.adjust_score(5, 3, LEFT, 1, 1)
    assert derive_positions(engine.state).server.index == 0


def test_positions_empty_without_players():
    positions = derive_positions(GameState(game_mode=SINGLES))
    assert positions.server is None
    assert positions.receiver is None
    assert positions.to_dict() == {"server": None, "receiver": None}


def test_score_display_singles_omits_server_number():
    engine = _singles()
    engine.apply_touch(LEFT)
    assert score_display(engine.state) == "1 - 0"


def test_court_layout_doubles_uses_stored_positions():
    layout = court_layout(_doubles(RIGHT).state)
    assert layout == {
        LEFT: {TOP: "Mike Wilson", BOTTOM: "Lisa Chen"},
        RIGHT: {TOP: "Emma Davis", BOTTOM: "David Brown"},
    }


def test_court_layout_singles_places_server_and_receiver():
    layout = court_layout(_singles().state)
    assert layout == {
        LEFT: {TOP: None, BOTTOM: "John Smith"},
        RIGHT: {TOP: "Sarah Johnson", BOTTOM: None},
    }


def test_server_name_falls_back_to_label():
    state = _doubles().state
    assert server_name(state, LEFT, 1) == "Mike Wilson"
    assert server_name(state, LEFT, 2) == "Lisa Chen"
    assert server_name(GameState(), LEFT, 2) == "Server #2"


def test_starting_info_doubles_left_serving():
    info = starting_server_info(_doubles().state)
    assert info["startingServer"] == {
        "playerId": "P102",
        "name": "Lisa Chen",
        "team": LEFT,
        "position": BOTTOM,
        "serverNumber": 2,
    }
    assert info["startingReceiver"]["name"] == "David Brown"
    assert info["startingReceiver"]["position"] == TOP
    assert info["crossCourtServing"] is True


def test_starting_info_doubles_right_serving():
    info = starting_server_info(_doubles(RIGHT).state)
    assert info["startingServer"]["name"] == "Emma Davis"
    assert info["startingServer"]["position"] == TOP
    assert info["startingReceiver"]["name"] == "Lisa Chen"
    assert info["startingReceiver"]["position"] == BOTTOM


def test_starting_info_singles():
    info = starting_server_info(_singles(RIGHT).state)
    assert info == {
        "startingServer": {"playerId": "P002", "name": "Sarah Johnson", "team": RIGHT},
        "startingReceiver": {"playerId": "P001", "name": "John Smith", "team": LEFT},
    }
