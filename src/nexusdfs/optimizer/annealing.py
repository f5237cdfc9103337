"""Simulated annealing generator.

Each run starts from a greedy feasible roster and explores neighbours built by
five moves. Independent runs only read the shared pool, so they are executed
on a bounded thread pool and merged afterwards.
"""

from __future__ import annotations

import logging
import math
import random
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from nexusdfs.errors import NeighborGenerationFailure, OptimizationCancelled
from nexusdfs.models import Lineup
from nexusdfs.progress import CancellationToken, ProgressSink
from nexusdfs.scoring import salary_efficiency_bonus, stack_bonus

from .base import Algorithm, GenerationResult, LineupGenerator, ScoredLineup, summarize, unique_by_signature
from .exposure import ExposureTracker
from .pool import raw_projection


logger = logging.getLogger(__name__)

_NEXUS_WEIGHT = 0.6
_ANNEALING_WEIGHT = 0.4
_SWAP_PROJECTION_RATIO = 0.8
_SWAP_BASE_WEIGHT = 5.0


class AnnealingConfig(BaseModel):
    initial_temperature: float = Field(1000.0, gt=0.0)
    final_temperature: float = Field(0.1, gt=0.0)
    cooling_rate: float = Field(0.95, gt=0.0, lt=1.0)
    max_iterations: int = Field(10_000, ge=1)
    max_stagnation: int = Field(500, ge=1)
    reheat_factor: float = Field(2.0, ge=1.0)
    neighborhood_size: int = Field(5, ge=1)
    acceptance_threshold: float = Field(0.01, ge=0.0, le=1.0)
    max_runs: int = Field(10, ge=1)
    projection_weight: float = Field(10.0, ge=0.0)
    exposure_weight: float = Field(3.0, ge=0.0)

    model_config = ConfigDict(extra="ignore", frozen=True)


def acceptance_probability(current: float, candidate: float, temperature: float) -> float:
    """Metropolis probability of moving from ``current`` to ``candidate``."""

    if candidate > current:
        return 1.0
    if temperature <= 0.0:
        return 0.0
    return math.exp((candidate - current) / temperature)


def accept_move(
    current: float,
    candidate: float,
    temperature: float,
    threshold: float,
    rng: random.Random,
) -> bool:
    probability = acceptance_probability(current, candidate, temperature)
    if probability >= 1.0:
        return True
    if probability < threshold:
        return False
    return rng.random() < probability


@dataclass
class RunOutcome:
    lineups: List[Lineup]
    best_score: float
    initial_score: float
    iterations: int
    accepted: int
    proposals: int
    reheats: int
    neighbor_failures: int
    final_temperature: float
    scores: Dict[Tuple[str, ...], float] = field(default_factory=dict)

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.proposals if self.proposals else 0.0

    @property
    def convergence_efficiency(self) -> float:
        return (self.best_score - self.initial_score) / self.iterations if self.iterations else 0.0


Move = Callable[[random.Random, Lineup, ExposureTracker], Lineup]


class AnnealingGenerator(LineupGenerator):
    algorithm = Algorithm.ANNEALING
    config_model = AnnealingConfig

    def annealing_score(self, lineup: Lineup, tracker: ExposureTracker) -> float:
        """Search objective: weighted projection, exposure fit, stacks and salary use."""

        config: AnnealingConfig = self.config
        score = lineup.projection * config.projection_weight
        if tracker.has_constraints:
            score += tracker.constraint_score(lineup) * config.exposure_weight
        score += stack_bonus(lineup.team_counts)
        score += salary_efficiency_bonus(lineup.salary / self.rules.salary_cap)
        return score

    def _generate(
        self,
        count: int,
        rng: random.Random,
        progress: ProgressSink,
        token: CancellationToken,
    ) -> GenerationResult:
        config: AnnealingConfig = self.config
        runs = min(count, config.max_runs)
        per_run = math.ceil(count / runs)
        seeds = [rng.randrange(2**31) for _ in range(runs)]
        outcomes: List[RunOutcome] = []

        workers = min(runs, self.max_workers)
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(self._anneal, seed, per_run, token) for seed in seeds]
                try:
                    for index, future in enumerate(futures):
                        outcomes.append(future.result())
                        progress.progress((index + 1) / runs * 90.0, f"annealing_run_{index}")
                except OptimizationCancelled:
                    for pending in futures:
                        pending.cancel()
                    raise
        else:
            for index, seed in enumerate(seeds):
                progress.status(f"Annealing run {index + 1}/{runs}")
                outcomes.append(self._anneal(seed, per_run, token))
                progress.progress((index + 1) / runs * 90.0, f"annealing_run_{index}")

        scored: List[ScoredLineup] = []
        for outcome in outcomes:
            for lineup in outcome.lineups:
                scored.append(self._score(lineup, annealing_score=outcome.scores.get(lineup.signature, 0.0)))
        scored.sort(key=lambda item: item.nexus_score * _NEXUS_WEIGHT + item.annealing_score * _ANNEALING_WEIGHT, reverse=True)
        lineups = unique_by_signature(scored, limit=count, exclude=self._existing_signatures())

        iterations = sum(outcome.iterations for outcome in outcomes)
        proposals = sum(outcome.proposals for outcome in outcomes)
        accepted = sum(outcome.accepted for outcome in outcomes)
        logger.info("Annealing finished %s runs (%s iterations) with %s lineups", runs, iterations, len(lineups))
        return GenerationResult(
            lineups=lineups,
            summary=summarize(
                lineups,
                self.name,
                runs=runs,
                iterations=iterations,
                acceptance_rate=accepted / proposals if proposals else 0.0,
                convergence_efficiency=(
                    sum(outcome.convergence_efficiency for outcome in outcomes) / len(outcomes) if outcomes else 0.0
                ),
                best_annealing_score=max((outcome.best_score for outcome in outcomes), default=0.0),
                average_annealing_score=(
                    sum(item.annealing_score for item in lineups) / len(lineups) if lineups else 0.0
                ),
                reheats=sum(outcome.reheats for outcome in outcomes),
                neighbor_failures=sum(outcome.neighbor_failures for outcome in outcomes),
                final_temperature=min((outcome.final_temperature for outcome in outcomes), default=0.0),
                temperature_decay=config.cooling_rate,
            ),
        )

    def _anneal(self, seed: int, count: int, token: CancellationToken) -> RunOutcome:
        assert self.pool is not None
        config: AnnealingConfig = self.config
        rng = random.Random(seed)
        tracker = self._new_tracker()

        current = self.pool.build_lineup(rng, randomness=0.0, value_fn=raw_projection)
        if current is None:
            raise NeighborGenerationFailure("initial", "no greedy feasible roster")
        current_score = self.annealing_score(current, tracker)
        best, best_score = current, current_score
        initial_score = current_score

        temperature = config.initial_temperature
        iteration = accepted = proposals = reheats = failures = stagnation = 0
        while iteration < config.max_iterations and temperature > config.final_temperature:
            token.raise_if_cancelled("annealing_iteration", self.name)
            candidate: Optional[Lineup] = None
            candidate_score = -math.inf
            for _ in range(config.neighborhood_size):
                try:
                    neighbor = self.neighbor(rng, current, tracker)
                except NeighborGenerationFailure as exc:
                    failures += 1
                    logger.debug("Skipping neighbour: %s", exc)
                    continue
                score = self.annealing_score(neighbor, tracker)
                if score > candidate_score:
                    candidate, candidate_score = neighbor, score

            if candidate is not None:
                proposals += 1
                if accept_move(current_score, candidate_score, temperature, config.acceptance_threshold, rng):
                    accepted += 1
                    current, current_score = candidate, candidate_score
                    if candidate_score > best_score:
                        best, best_score = candidate, candidate_score
                        stagnation = 0
                    else:
                        stagnation += 1
                else:
                    stagnation += 1
            else:
                stagnation += 1

            if stagnation >= config.max_stagnation:
                temperature *= config.reheat_factor
                reheats += 1
                stagnation = 0
            temperature *= config.cooling_rate
            iteration += 1

        variations = self.variations(rng, best, count, tracker)
        scores = {lineup.signature: self.annealing_score(lineup, tracker) for lineup in variations}
        return RunOutcome(
            lineups=variations,
            best_score=best_score,
            initial_score=initial_score,
            iterations=iteration,
            accepted=accepted,
            proposals=proposals,
            reheats=reheats,
            neighbor_failures=failures,
            final_temperature=temperature,
            scores=scores,
        )

    def variations(self, rng: random.Random, best: Lineup, count: int, tracker: ExposureTracker) -> List[Lineup]:
        """The best lineup plus small mutations of it, all distinct."""

        results = [best]
        seen = {best.signature}
        tracker.record(best)
        attempts = count * 5
        while len(results) < count and attempts > 0:
            attempts -= 1
            variation = best
            try:
                for _ in range(1 if rng.random() < 0.7 else 2):
                    variation = self.neighbor(rng, variation, tracker)
            except NeighborGenerationFailure:
                continue
            if variation.signature in seen:
                continue
            seen.add(variation.signature)
            tracker.record(variation)
            results.append(variation)
        return results

    # Neighbourhood moves -------------------------------------------------

    def neighbor(self, rng: random.Random, lineup: Lineup, tracker: ExposureTracker) -> Lineup:
        moves: List[Tuple[str, Move]] = [
            ("swap_player", self._move_swap_player),
            ("swap_captain", self._move_swap_captain),
            ("change_stack", self._move_change_stack),
            ("optimize_salary", self._move_optimize_salary),
            ("balance_exposure", self._move_balance_exposure),
        ]
        name, move = rng.choice(moves)
        assert self.pool is not None
        result = move(rng, lineup, tracker)
        if not self.pool.is_valid(result):
            raise NeighborGenerationFailure(name, "move produced an invalid roster")
        return result

    def _headroom(self, lineup: Lineup, position: str) -> int:
        current = lineup.flex_at(position)
        return self.rules.salary_cap - lineup.salary + (current.salary if current else 0)

    def _move_swap_player(self, rng: random.Random, lineup: Lineup, tracker: ExposureTracker) -> Lineup:
        assert self.pool is not None
        position = rng.choice(self.rules.required_positions)
        current = lineup.flex_at(position)
        assert current is not None
        floor = current.projection * _SWAP_PROJECTION_RATIO
        options = [
            player
            for player in self.pool.alternatives(lineup, position, max_salary=self._headroom(lineup, position))
            if player.projection >= floor
        ]
        if not options:
            raise NeighborGenerationFailure("swap_player", f"no alternative at {position}")
        weights = [max(0.1, player.projection - current.projection + _SWAP_BASE_WEIGHT) for player in options]
        return lineup.with_flex(position, rng.choices(options, weights=weights, k=1)[0])

    def _move_swap_captain(self, rng: random.Random, lineup: Lineup, tracker: ExposureTracker) -> Lineup:
        assert self.pool is not None
        old_captain = lineup.captain
        promoted = max(lineup.flex, key=lambda player: (player.projection * self.rules.captain_multiplier, player.player_id))
        position = promoted.position
        promoted_lineup = lineup.with_captain(promoted)
        if old_captain.position == position:
            return promoted_lineup.with_flex(position, old_captain)

        # The old captain cannot fill the vacated slot; take the best affordable replacement.
        headroom = self.rules.salary_cap - (promoted_lineup.salary - promoted.salary)
        options = self.pool.alternatives(promoted_lineup, position, max_salary=headroom)
        if not options:
            raise NeighborGenerationFailure("swap_captain", f"no replacement at {position}")
        best = max(options, key=lambda player: (player.projection, player.player_id))
        return promoted_lineup.with_flex(position, best)

    def _move_change_stack(self, rng: random.Random, lineup: Lineup, tracker: ExposureTracker) -> Lineup:
        assert self.pool is not None
        counts = Counter(player.team for player in (lineup.captain, *lineup.flex))
        stackable = sorted(team for team, count in counts.items() if 2 <= count < self.rules.team_max_players)
        if not stackable:
            raise NeighborGenerationFailure("change_stack", "no growable stack")
        team = rng.choice(stackable)
        outsiders = [player for player in lineup.flex if player.team != team]
        if not outsiders:
            raise NeighborGenerationFailure("change_stack", f"no player outside {team}")
        target = rng.choice(outsiders)
        options = [
            player
            for player in self.pool.alternatives(lineup, target.position, max_salary=self._headroom(lineup, target.position))
            if player.team == team
        ]
        if not options:
            raise NeighborGenerationFailure("change_stack", f"no {team} player at {target.position}")
        return lineup.with_flex(target.position, rng.choice(options))

    def _move_optimize_salary(self, rng: random.Random, lineup: Lineup, tracker: ExposureTracker) -> Lineup:
        assert self.pool is not None
        if lineup.salary >= self.rules.salary_cap:
            raise NeighborGenerationFailure("optimize_salary", "no salary headroom")
        upgrades: Dict[str, List] = {}
        for current in lineup.flex:
            options = [
                player
                for player in self.pool.alternatives(lineup, current.position, max_salary=self._headroom(lineup, current.position))
                if player.salary > current.salary
            ]
            if options:
                upgrades[current.position] = options
        if not upgrades:
            raise NeighborGenerationFailure("optimize_salary", "no affordable upgrade")
        position = rng.choice(sorted(upgrades))
        best = max(upgrades[position], key=lambda player: (player.points_per_dollar, player.player_id))
        return lineup.with_flex(position, best)

    def _move_balance_exposure(self, rng: random.Random, lineup: Lineup, tracker: ExposureTracker) -> Lineup:
        assert self.pool is not None
        over = tracker.out_of_band(lineup)
        if not over:
            raise NeighborGenerationFailure("balance_exposure", "no player outside its band")
        player, is_captain = rng.choice(over)
        if is_captain:
            used = lineup.player_ids
            budget = self.rules.salary_cap - (lineup.salary - lineup.captain_salary)
            options = [
                candidate
                for candidate in self.pool.captain_candidates
                if candidate.player_id not in used
                and tracker.accepts(candidate)
                and self.rules.captain_salary(candidate.salary) <= budget
            ]
            if not options:
                raise NeighborGenerationFailure("balance_exposure", "no in-band captain")
            return lineup.with_captain(rng.choice(options))

        options = [
            candidate
            for candidate in self.pool.alternatives(lineup, player.position, max_salary=self._headroom(lineup, player.position))
            if tracker.accepts(candidate)
        ]
        if not options:
            raise NeighborGenerationFailure("balance_exposure", f"no in-band player at {player.position}")
        return lineup.with_flex(player.position, rng.choice(options))
