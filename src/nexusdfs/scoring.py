"""NexusScore evaluation and batch-level lineup metrics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterable, Mapping, Sequence

from nexusdfs.config.roster import DEFAULT_RULES, RosterRules
from nexusdfs.models import Lineup


_LEVERAGE_MIN = 0.6
_LEVERAGE_MAX = 1.5
_OWNERSHIP_FLOOR = 0.1
_STACK_MIN_COUNT = 3
_STACK_EXPONENT = 1.8
_STACK_WEIGHT = 25.0
_DIVERSITY_SAMPLE = 50


@dataclass(frozen=True)
class NexusScore:
    total: float
    components: Mapping[str, float] = field(default_factory=dict)

    @property
    def roi(self) -> float:
        return lineup_roi(self.total)


def average_ownership(lineup: Lineup) -> float:
    players = lineup.players
    if not players:
        return 0.0
    return sum(player.ownership_pct for player in players) / len(players)


def leverage_factor(avg_ownership: float) -> float:
    """Reward for low-owned rosters, inverse to average ownership percentage."""

    raw = 1.0 / max(avg_ownership / 100.0, _OWNERSHIP_FLOOR)
    return max(_LEVERAGE_MIN, min(_LEVERAGE_MAX, raw))


def stack_bonus(team_counts: Mapping[str, int]) -> float:
    return sum(
        (count - 2) ** _STACK_EXPONENT * _STACK_WEIGHT
        for count in team_counts.values()
        if count >= _STACK_MIN_COUNT
    )


def salary_efficiency_bonus(usage: float) -> float:
    if usage >= 0.95:
        return 200.0 * (usage - 0.95)
    if usage >= 0.90:
        return 100.0 * (usage - 0.90)
    return -50.0 * (0.90 - usage)


def score_lineup(lineup: Lineup, rules: RosterRules = DEFAULT_RULES) -> NexusScore:
    """Compute the NexusScore of a lineup.

    ``total = base_projection * leverage + stack_bonus + salary_bonus``; the
    components are always returned with the total. The function is pure.
    """

    base = lineup.projection
    avg_own = average_ownership(lineup)
    leverage = leverage_factor(avg_own)
    stacks = stack_bonus(lineup.team_counts)
    salary = lineup.salary
    usage = salary / rules.salary_cap if rules.salary_cap else 0.0
    efficiency = salary_efficiency_bonus(usage)
    total = base * leverage + stacks + efficiency
    return NexusScore(
        total=total,
        components={
            "base_projection": base,
            "avg_ownership": avg_own,
            "leverage_factor": leverage,
            "stack_bonus": stacks,
            "salary": float(salary),
            "salary_usage": usage,
            "salary_efficiency_bonus": efficiency,
        },
    )


def lineup_roi(nexus_score: float) -> float:
    """Estimated ROI percentage derived from a NexusScore."""

    return (nexus_score / 100.0) * 200.0 - 50.0


def lineup_distance(first: Lineup, second: Lineup) -> float:
    """Jaccard distance between the player id sets of two lineups."""

    a = set(first.signature)
    b = set(second.signature)
    union = a | b
    if not union:
        return 0.0
    return 1.0 - len(a & b) / len(union)


def diversity_score(lineups: Sequence[Lineup], sample: int = _DIVERSITY_SAMPLE) -> float:
    """Mean pairwise distance across the first ``sample`` lineups."""

    subset = list(lineups[:sample])
    if len(subset) < 2:
        return 0.0
    distances = [lineup_distance(a, b) for a, b in combinations(subset, 2)]
    return sum(distances) / len(distances)


def player_exposures(lineups: Iterable[Lineup]) -> Dict[str, float]:
    """Percentage of lineups each player appears in, keyed by player id."""

    counts: Counter = Counter()
    total = 0
    for lineup in lineups:
        total += 1
        counts.update(lineup.player_ids)
    if total == 0:
        return {}
    return {player_id: count / total * 100.0 for player_id, count in counts.most_common()}


def team_exposures(lineups: Iterable[Lineup]) -> Dict[str, float]:
    counts: Counter = Counter()
    total = 0
    for lineup in lineups:
        total += 1
        counts.update({player.team for player in lineup.players})
    if total == 0:
        return {}
    return {team: count / total * 100.0 for team, count in counts.most_common()}
