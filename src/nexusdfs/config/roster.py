"""Roster configuration for supported showdown formats."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple


@dataclass(frozen=True)
class RosterRules:
    key: str
    salary_cap: int
    required_positions: Tuple[str, ...]
    team_slot: bool
    captain_multiplier: float
    team_max_players: int
    min_teams: int
    # Sanity bounds used for validator warnings only.
    min_player_salary: int
    max_player_salary: int
    max_projection: float

    @property
    def roster_size(self) -> int:
        return len(self.required_positions) + 1 + (1 if self.team_slot else 0)

    def captain_salary(self, salary: int) -> int:
        """Effective captain salary, rounded half-up to whole dollars."""

        return int(math.floor(salary * self.captain_multiplier + 0.5))

    def captain_projection(self, projection: float) -> float:
        return projection * self.captain_multiplier


_ROSTER_RULES: Dict[str, RosterRules] = {
    "LOL_SHOWDOWN": RosterRules(
        key="LOL_SHOWDOWN",
        salary_cap=50_000,
        required_positions=("TOP", "JNG", "MID", "ADC", "SUP"),
        team_slot=True,
        captain_multiplier=1.5,
        team_max_players=4,
        min_teams=2,
        min_player_salary=3_000,
        max_player_salary=11_000,
        max_projection=80.0,
    ),
    "LOL_CLASSIC": RosterRules(
        key="LOL_CLASSIC",
        salary_cap=50_000,
        required_positions=("TOP", "JNG", "MID", "ADC", "SUP"),
        team_slot=False,
        captain_multiplier=1.5,
        team_max_players=4,
        min_teams=2,
        min_player_salary=3_000,
        max_player_salary=11_000,
        max_projection=80.0,
    ),
}

DEFAULT_RULES_KEY = "LOL_SHOWDOWN"


def iter_rules() -> Iterable[RosterRules]:
    """Return an iterator of all configured rule sets."""

    return _ROSTER_RULES.values()


def get_rules(key: str = DEFAULT_RULES_KEY) -> RosterRules:
    """Fetch rules by format key, raising KeyError if missing."""

    normalized = key.upper()
    if normalized not in _ROSTER_RULES:
        raise KeyError(f"No roster rules configured for format={key!r}")
    return _ROSTER_RULES[normalized]


DEFAULT_RULES: RosterRules = _ROSTER_RULES[DEFAULT_RULES_KEY]
