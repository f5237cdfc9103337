"""Indexed player pool and feasible roster construction shared by generators."""

from __future__ import annotations

import math
import random
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from nexusdfs.config.roster import DEFAULT_RULES, RosterRules
from nexusdfs.models import Lineup, PlayerRecord
from nexusdfs.validation import validate_lineup


# (player, is_captain) -> sampling value; higher is better.
ValueFn = Callable[[PlayerRecord, bool], float]
# (player, is_captain) -> multiplicative weight adjustment.
WeightFn = Callable[[PlayerRecord, bool], float]

_GREEDY_EPSILON = 1e-6


def value_per_dollar(player: PlayerRecord, captain: bool) -> float:
    return player.points_per_dollar


def raw_projection(player: PlayerRecord, captain: bool) -> float:
    return player.projection * (1.5 if captain else 1.0)


def weighted_pick(
    rng: random.Random,
    candidates: Sequence[PlayerRecord],
    values: Sequence[float],
    randomness: float,
    factors: Optional[Sequence[float]] = None,
) -> Optional[PlayerRecord]:
    """Pick a candidate with probability increasing in its value.

    ``randomness`` of 0 is a greedy argmax (ties broken by player id); 1 is
    uniform. In between, weights follow a softmax whose temperature grows with
    ``randomness``. ``factors`` scale the values in greedy mode and the weights
    otherwise; a zero factor rules a candidate out.
    """

    if not candidates:
        return None
    if randomness <= 0.0:
        scaled = list(values)
        eligible = list(range(len(candidates)))
        if factors is not None:
            scaled = [value * max(factor, 0.0) for value, factor in zip(values, factors)]
            eligible = [i for i in eligible if factors[i] > 0.0] or eligible
        best = min(eligible, key=lambda i: (-scaled[i], candidates[i].player_id))
        return candidates[best]

    if randomness >= 1.0:
        weights = [1.0] * len(candidates)
    else:
        top = max(values)
        spread = (top - min(values)) or 1.0
        tau = spread * randomness / max(1.0 - randomness, _GREEDY_EPSILON)
        weights = [math.exp((value - top) / tau) for value in values]

    if factors is not None:
        weights = [weight * max(factor, 0.0) for weight, factor in zip(weights, factors)]
    total = sum(weights)
    if total <= 0.0:
        return rng.choice(list(candidates))
    return rng.choices(list(candidates), weights=weights, k=1)[0]


class PlayerPool:
    """Immutable, indexed view of a validated player pool."""

    def __init__(self, players: Iterable[PlayerRecord], rules: RosterRules = DEFAULT_RULES):
        self.rules = rules
        self.players: Tuple[PlayerRecord, ...] = tuple(players)
        self.by_id: Dict[str, PlayerRecord] = {player.player_id: player for player in self.players}

        by_position: Dict[str, List[PlayerRecord]] = {}
        for player in self.players:
            by_position.setdefault(player.position, []).append(player)
        self.by_position: Dict[str, Tuple[PlayerRecord, ...]] = {
            position: tuple(sorted(group, key=lambda p: (p.salary, p.player_id)))
            for position, group in by_position.items()
        }
        self.captain_candidates: Tuple[PlayerRecord, ...] = tuple(
            player for player in self.players if player.position in rules.required_positions
        )
        self.team_entries: Tuple[PlayerRecord, ...] = (
            self.by_position.get("TEAM", ()) if rules.team_slot else ()
        )
        by_team: Dict[str, List[PlayerRecord]] = {}
        for player in self.captain_candidates:
            by_team.setdefault(player.team, []).append(player)
        self.by_team: Dict[str, Tuple[PlayerRecord, ...]] = {team: tuple(group) for team, group in by_team.items()}

    def __len__(self) -> int:
        return len(self.players)

    @property
    def teams(self) -> Tuple[str, ...]:
        return tuple(sorted(self.by_team))

    def candidates(self, position: str) -> Tuple[PlayerRecord, ...]:
        return self.by_position.get(position, ())

    def lower_bound(self, positions: Iterable[str], include_team: bool, used: Iterable[str] = ()) -> int:
        """Cheapest possible cost of filling ``positions`` (and the TEAM slot) without ``used`` ids."""

        blocked = set(used)
        total = 0
        for position in positions:
            total += next((p.salary for p in self.candidates(position) if p.player_id not in blocked), 0)
        if include_team and self.team_entries:
            total += self.team_entries[0].salary
        return total

    def captain_cost(self, player: PlayerRecord) -> int:
        return self.rules.captain_salary(player.salary)

    def is_valid(self, lineup: Lineup) -> bool:
        return not validate_lineup(lineup, self.rules)

    def assemble(
        self,
        captain: PlayerRecord,
        flex: Dict[str, PlayerRecord],
        team: Optional[PlayerRecord] = None,
    ) -> Lineup:
        ordered = tuple(flex[position] for position in self.rules.required_positions)
        return Lineup(
            captain=captain,
            flex=ordered,
            team=team,
            captain_multiplier=self.rules.captain_multiplier,
        )

    def build_lineup(
        self,
        rng: random.Random,
        *,
        randomness: float = 0.5,
        value_fn: ValueFn = value_per_dollar,
        weight_fn: Optional[WeightFn] = None,
        captain: Optional[PlayerRecord] = None,
    ) -> Optional[Lineup]:
        """Construct one feasible lineup or return None when sampling dead-ends.

        Slots are filled captain first, then required positions in random
        order, then TEAM. Every pick keeps the running salary plus the
        cheapest completion of the remaining slots under the cap and respects
        the per-team limit.
        """

        rules = self.rules
        include_team = bool(self.team_entries)
        used: set[str] = set()
        team_counts: Counter = Counter()
        remaining = list(rules.required_positions)
        if randomness > 0.0:
            rng.shuffle(remaining)

        if captain is None:
            options = [
                p
                for p in self.captain_candidates
                if self.captain_cost(p) + self.lower_bound(remaining, include_team, (p.player_id,)) <= rules.salary_cap
            ]
            captain = self._pick(rng, options, True, randomness, value_fn, weight_fn)
            if captain is None:
                return None
        spent = self.captain_cost(captain)
        used.add(captain.player_id)
        team_counts[captain.team] += 1

        flex: Dict[str, PlayerRecord] = {}
        while remaining:
            position = remaining.pop(0)
            budget = rules.salary_cap - spent - self.lower_bound(remaining, include_team, used)
            options = [
                p
                for p in self.candidates(position)
                if p.player_id not in used
                and p.salary <= budget
                and team_counts[p.team] < rules.team_max_players
            ]
            choice = self._pick(rng, options, False, randomness, value_fn, weight_fn)
            if choice is None:
                return None
            flex[position] = choice
            spent += choice.salary
            used.add(choice.player_id)
            team_counts[choice.team] += 1

        team_entry = None
        if include_team:
            budget = rules.salary_cap - spent
            options = [p for p in self.team_entries if p.salary <= budget]
            team_entry = self._pick(rng, options, False, randomness, value_fn, weight_fn)
            if team_entry is None:
                return None

        return self.assemble(captain, flex, team_entry)

    def _pick(
        self,
        rng: random.Random,
        options: Sequence[PlayerRecord],
        captain: bool,
        randomness: float,
        value_fn: ValueFn,
        weight_fn: Optional[WeightFn],
    ) -> Optional[PlayerRecord]:
        if not options:
            return None
        values = [value_fn(player, captain) for player in options]
        factors = [weight_fn(player, captain) for player in options] if weight_fn is not None else None
        return weighted_pick(rng, options, values, randomness, factors)

    def alternatives(
        self,
        lineup: Lineup,
        position: str,
        *,
        max_salary: Optional[int] = None,
    ) -> List[PlayerRecord]:
        """Position-eligible players not in ``lineup`` that keep team limits."""

        current = lineup.flex_at(position)
        used = lineup.player_ids
        counts = Counter(player.team for player in (lineup.captain, *lineup.flex))
        if current is not None:
            counts[current.team] -= 1
        result = []
        for player in self.candidates(position):
            if player.player_id in used:
                continue
            if counts[player.team] >= self.rules.team_max_players:
                continue
            if max_salary is not None and player.salary > max_salary:
                continue
            result.append(player)
        return result

    def cheapest_alternative(self, lineup: Lineup, position: str) -> Optional[PlayerRecord]:
        """Cheapest eligible replacement that keeps the lineup under the cap."""

        current = lineup.flex_at(position)
        headroom = self.rules.salary_cap - lineup.salary + (current.salary if current else 0)
        options = self.alternatives(lineup, position, max_salary=headroom)
        return options[0] if options else None

    def repair(self, lineup: Lineup) -> Optional[Lineup]:
        """Fix duplicate ids and salary overflow using cheapest feasible swaps.

        Returns None when no sequence of cheapest swaps restores validity.
        """

        rules = self.rules
        seen = {lineup.captain.player_id}
        for player in list(lineup.flex):
            if player.player_id in seen:
                replacement = self._cheapest_excluding(lineup, player.position, seen | lineup.player_ids)
                if replacement is None:
                    return None
                lineup = lineup.with_flex(player.position, replacement)
                player = replacement
            seen.add(player.player_id)

        attempts = len(rules.required_positions)
        while lineup.salary > rules.salary_cap and attempts > 0:
            attempts -= 1
            # Downgrade the slot with the largest possible saving.
            best_position = None
            best_player = None
            best_saving = 0
            for current in lineup.flex:
                cheaper = self._cheapest_excluding(lineup, current.position, lineup.player_ids)
                if cheaper is None:
                    continue
                saving = current.salary - cheaper.salary
                if saving > best_saving:
                    best_position, best_player, best_saving = current.position, cheaper, saving
            if best_player is None:
                break
            lineup = lineup.with_flex(best_position, best_player)

        if lineup.team is not None and lineup.salary > rules.salary_cap and self.team_entries:
            lineup = lineup.with_team(self.team_entries[0])

        return lineup if self.is_valid(lineup) else None

    def _cheapest_excluding(self, lineup: Lineup, position: str, excluded: Iterable[str]) -> Optional[PlayerRecord]:
        blocked = set(excluded)
        current = lineup.flex_at(position)
        counts = Counter(player.team for player in (lineup.captain, *lineup.flex))
        if current is not None:
            counts[current.team] -= 1
        for player in self.candidates(position):
            if player.player_id in blocked:
                continue
            if counts[player.team] >= self.rules.team_max_players:
                continue
            return player
        return None
