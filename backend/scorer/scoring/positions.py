"""Court position derivation for rendering and reporting.

Pure functions over ``GameState``: where the server and receiver stand, which
names go in which court half, the score call, and who served first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .pickleball import (
    BOTTOM,
    LEFT,
    RIGHT,
    RIGHT_HAND_POSITION,
    SIDES,
    TOP,
    GameState,
    opposite_position,
    other_side,
)


@dataclass(frozen=True)
class CourtSlot:
    team: str
    position: str
    index: int
    name: Optional[str] = None
    player_id: Optional[str] = None

    @property
    def court_code(self) -> str:
        """Short court label, e.g. ``CLB`` for the left team's bottom half."""
        return f"C{self.team[0].upper()}{self.position[0].upper()}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team": self.team,
            "position": self.position,
            "index": self.index,
            "name": self.name,
            "playerId": self.player_id,
            "court": self.court_code,
        }


@dataclass(frozen=True)
class CourtPositions:
    server: Optional[CourtSlot] = None
    receiver: Optional[CourtSlot] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server": self.server.to_dict() if self.server else None,
            "receiver": self.receiver.to_dict() if self.receiver else None,
        }


def singles_positions(serving_team: str, server_score: int) -> tuple[str, str]:
    """Return ``(server_position, receiver_position)`` for a singles rally.

    The server starts in the team's right-hand half on an even score and the
    receiver always stands diagonally opposite.
    """
    server = RIGHT_HAND_POSITION[serving_team]
    if server_score % 2:
        server = opposite_position(server)
    return server, opposite_position(server)


def _slot(state: GameState, team: str, index: int, position: str) -> CourtSlot:
    player = state.teams[team].players[index]
    return CourtSlot(
        team=team,
        position=position,
        index=index,
        name=player.name,
        player_id=player.player_id,
    )


def derive_positions(state: GameState) -> CourtPositions:
    serving_team = state.serving.team
    receiving_team = other_side(serving_team)
    servers = state.teams[serving_team].players
    receivers = state.teams[receiving_team].players
    if not servers or not receivers:
        return CourtPositions()

    if not state.is_doubles:
        server_pos, receiver_pos = singles_positions(
            serving_team, state.teams[serving_team].score
        )
        return CourtPositions(
            server=_slot(state, serving_team, 0, server_pos),
            receiver=_slot(state, receiving_team, 0, receiver_pos),
        )

    active = state.serving.active_server or state.serving.player
    if not 1 <= active <= len(servers):
        return CourtPositions()

    server_index = active - 1
    server_pos = servers[server_index].position or RIGHT_HAND_POSITION[serving_team]
    server = _slot(state, serving_team, server_index, server_pos)

    receiver_pos = opposite_position(server_pos)
    receiver = None
    for index, player in enumerate(receivers):
        if player.position == receiver_pos:
            receiver = _slot(state, receiving_team, index, receiver_pos)
            break

    return CourtPositions(server=server, receiver=receiver)


def court_layout(state: GameState) -> Dict[str, Dict[str, Optional[str]]]:
    """Player names per court half: ``{"left": {"top": ..., "bottom": ...}, ...}``."""

    layout: Dict[str, Dict[str, Optional[str]]] = {
        side: {TOP: None, BOTTOM: None} for side in SIDES
    }

    if state.is_doubles:
        for side in SIDES:
            for player in state.teams[side].players:
                if player.position in (TOP, BOTTOM):
                    layout[side][player.position] = player.name
        return layout

    positions = derive_positions(state)
    for slot in (positions.server, positions.receiver):
        if slot is not None:
            layout[slot.team][slot.position] = slot.name
    return layout


def score_display(state: GameState) -> str:
    left = state.teams[LEFT].score
    right = state.teams[RIGHT].score
    if state.is_doubles:
        return f"{left} - {right} - {state.serving.player}"
    return f"{left} - {right}"


def server_name(state: GameState, team: str, server_number: int) -> str:
    players = state.teams[team].players
    index = 0 if server_number == 1 else 1
    if index < len(players) and players[index].name:
        return players[index].name
    return f"Server #{2 if index else 1}"


def starting_server_info(state: GameState) -> Optional[Dict[str, Any]]:
    """Who served and who received the first rally of ``state``'s game.

    Meant to be called with the state captured at game start.
    """

    serving_team = state.serving.team
    receiving_team = other_side(serving_team)
    servers = state.teams[serving_team].players
    receivers = state.teams[receiving_team].players
    if not servers or not receivers:
        return None

    if not state.is_doubles:
        return {
            "startingServer": {
                "playerId": servers[0].player_id,
                "name": servers[0].name,
                "team": serving_team,
            },
            "startingReceiver": {
                "playerId": receivers[0].player_id,
                "name": receivers[0].name,
                "team": receiving_team,
            },
        }

    if len(servers) < 2:
        return None

    server = servers[1]
    receiver_pos = TOP if serving_team == LEFT else BOTTOM
    receiver = next((p for p in receivers if p.position == receiver_pos), None)

    info: Dict[str, Any] = {
        "startingServer": {
            "playerId": server.player_id,
            "name": server.name,
            "team": serving_team,
            "position": server.position,
            "serverNumber": 2,
        },
        "startingReceiver": None,
        "crossCourtServing": True,
    }
    if receiver is not None:
        info["startingReceiver"] = {
            "playerId": receiver.player_id,
            "name": receiver.name,
            "team": receiving_team,
            "position": receiver.position,
        }
    return info
