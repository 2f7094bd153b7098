"""Pre-game setup: which roster team plays on which side, who serves first.

``MatchSetup`` collects the referee's choices for a loaded match and turns
them into a ``Lineup`` with starting court positions.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from ..schemas import MatchData
from ..services.validation import ValidationError
from .pickleball import (
    BOTTOM,
    DOUBLES,
    LEFT,
    RIGHT,
    SIDES,
    TOP,
    Lineup,
    Player,
    other_side,
)

DEFAULT_TEAM_ASSIGNMENT = {"A": LEFT, "B": RIGHT}


class MatchSetup:
    def __init__(self, match: MatchData) -> None:
        self.match = match
        self.team_assignment: Dict[str, str] = dict(DEFAULT_TEAM_ASSIGNMENT)
        self.serving_team: Optional[str] = None
        self.server: Optional[Player] = None
        self.server_side: Optional[str] = None
        self.receiver: Optional[Player] = None

    @property
    def is_doubles(self) -> bool:
        return self.match.gameMode == DOUBLES

    def roster_team(self, side: str) -> str:
        for team, assigned in self.team_assignment.items():
            if assigned == side:
                return team
        raise ValueError(f"no team assigned to {side!r}")

    def roster(self, side: str) -> List[Player]:
        if side not in SIDES:
            raise ValidationError("Side must be 'left' or 'right'.")
        return [
            Player(name=p.name, player_id=p.playerId)
            for p in self.match.team_players(self.roster_team(side))
        ]

    def select_serving_team(self, side: str) -> None:
        if side not in SIDES:
            raise ValidationError("Serving team must be 'left' or 'right'.")
        self.serving_team = side
        if self.server is not None and self.server_side != side:
            self.server = None
            self.server_side = None
            self.receiver = None

    def select_player(self, side: str, name: str) -> None:
        """Record a tap on a player during setup.

        The first pick is the starting server and decides the serving team.
        A following pick on the other side is the receiver. Anything else
        starts the selection over with the tapped player as server.
        """

        player = self._find(side, name)

        if (
            self.server is not None
            and self.receiver is None
            and side == other_side(self.server_side)
        ):
            self.receiver = player
            return

        self.server = player
        self.server_side = side
        self.receiver = None
        self.serving_team = side

    def switch_sides(self) -> None:
        self.team_assignment = {
            team: other_side(side) for team, side in self.team_assignment.items()
        }
        self.serving_team = None
        self.server = None
        self.server_side = None
        self.receiver = None

    @property
    def picks_complete(self) -> bool:
        return self.server is not None and self.receiver is not None

    @property
    def ready(self) -> bool:
        return self.serving_team is not None

    def build_lineup(self) -> Lineup:
        serving_team = self.serving_team or LEFT
        left = self.roster(LEFT)
        right = self.roster(RIGHT)

        if not self.is_doubles:
            return Lineup(left=left, right=right, serving_team=serving_team)

        if self.picks_complete and self.server_side == serving_team:
            return self._lineup_from_picks(serving_team)

        _place(left, TOP, BOTTOM)
        if serving_team == LEFT:
            _place(right, TOP, BOTTOM)
        else:
            _place(right, BOTTOM, TOP)
        return Lineup(left=left, right=right, serving_team=serving_team)

    def _lineup_from_picks(self, serving_team: str) -> Lineup:
        receiving_team = other_side(serving_team)
        if self.server is None or self.receiver is None:
            raise ValidationError("Pick both the server and the receiver first.")
        server = self._copy(self.server)
        receiver = self._copy(self.receiver)
        server_partner = self._partner(serving_team, server)
        receiver_partner = self._partner(receiving_team, receiver)

        # Server #2 sits at index 1, in the serving team's right-hand court.
        if serving_team == LEFT:
            server_partner.position, server.position = TOP, BOTTOM
            receiver.position, receiver_partner.position = TOP, BOTTOM
            return Lineup(
                left=[server_partner, server],
                right=[receiver, receiver_partner],
                serving_team=LEFT,
            )

        receiver_partner.position, receiver.position = TOP, BOTTOM
        server_partner.position, server.position = BOTTOM, TOP
        return Lineup(
            left=[receiver_partner, receiver],
            right=[server_partner, server],
            serving_team=RIGHT,
        )

    def _find(self, side: str, name: str) -> Player:
        for player in self.roster(side):
            if player.name == name:
                return player
        raise ValidationError(f"No player named '{name}' on the {side} side.")

    def _partner(self, side: str, player: Player) -> Player:
        for candidate in self.roster(side):
            if candidate.name != player.name:
                return candidate
        raise ValidationError(f"The {side} side needs two players for doubles.")

    @staticmethod
    def _copy(player: Player) -> Player:
        return Player(name=player.name, player_id=player.player_id)


def _place(players: List[Player], first: str, second: str) -> None:
    for player, position in zip(players, (first, second)):
        player.position = position
