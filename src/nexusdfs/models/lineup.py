"""Immutable lineup representation shared by every generator."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterator, Optional, Tuple

from .player import PlayerRecord


@dataclass(frozen=True)
class Lineup:
    """One captain, one flex player per required position and an optional TEAM.

    ``flex`` is ordered by the roster's required positions. Search operators
    never mutate a lineup; they derive a new one through the ``with_*``
    helpers.
    """

    captain: PlayerRecord
    flex: Tuple[PlayerRecord, ...]
    team: Optional[PlayerRecord] = None
    captain_multiplier: float = 1.5

    @property
    def players(self) -> Tuple[PlayerRecord, ...]:
        extra = (self.team,) if self.team is not None else ()
        return (self.captain, *self.flex, *extra)

    def __iter__(self) -> Iterator[PlayerRecord]:
        return iter(self.players)

    @property
    def captain_salary(self) -> int:
        return int(math.floor(self.captain.salary * self.captain_multiplier + 0.5))

    @property
    def salary(self) -> int:
        total = self.captain_salary + sum(player.salary for player in self.flex)
        if self.team is not None:
            total += self.team.salary
        return total

    @property
    def projection(self) -> float:
        total = self.captain.projection * self.captain_multiplier
        total += sum(player.projection for player in self.flex)
        if self.team is not None:
            total += self.team.projection
        return total

    @property
    def signature(self) -> Tuple[str, ...]:
        """Order-independent id signature of captain plus flex.

        Reassigning the captain among the same six players yields the same
        signature, so such lineups count as duplicates.
        """

        return tuple(sorted([self.captain.player_id, *(p.player_id for p in self.flex)]))

    @property
    def player_ids(self) -> FrozenSet[str]:
        return frozenset(player.player_id for player in self.players)

    @property
    def team_counts(self) -> Dict[str, int]:
        return dict(Counter(player.team for player in self.players))

    def flex_at(self, position: str) -> Optional[PlayerRecord]:
        for player in self.flex:
            if player.position == position:
                return player
        return None

    def with_captain(self, captain: PlayerRecord) -> "Lineup":
        return replace(self, captain=captain)

    def with_flex(self, position: str, player: PlayerRecord) -> "Lineup":
        slots = tuple(player if current.position == position else current for current in self.flex)
        return replace(self, flex=slots)

    def with_team(self, team: Optional[PlayerRecord]) -> "Lineup":
        return replace(self, team=team)

    def to_dict(self) -> dict:
        return {
            "captain": self.captain.player_id,
            "flex": [player.player_id for player in self.flex],
            "team": self.team.player_id if self.team is not None else None,
            "salary": self.salary,
            "projection": round(self.projection, 2),
        }
