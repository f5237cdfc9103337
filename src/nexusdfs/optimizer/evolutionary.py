"""Population evolution generator: elitism, crossover, mutation and repair."""

from __future__ import annotations

import logging
import math
import random
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from nexusdfs.errors import AlgorithmFailure
from nexusdfs.models import Lineup
from nexusdfs.progress import CancellationToken, ProgressSink

from .base import Algorithm, GenerationResult, LineupGenerator, ScoredLineup, summarize, unique_by_signature
from .exposure import ExposureTracker


logger = logging.getLogger(__name__)

_NEXUS_WEIGHT = 0.7
_FITNESS_WEIGHT = 0.3
_COMPOSITION_PENALTY = 25.0
_IMMIGRANT_RANDOMNESS = 0.6


class EvolutionConfig(BaseModel):
    population_size: int = Field(100, ge=2)
    generations: int = Field(50, ge=1)
    elite_ratio: float = Field(0.05, ge=0.0, le=1.0)
    mutation_rate: float = Field(0.6, ge=0.0, le=1.0)
    diversity_weight: float = Field(0.7, ge=0.0, le=1.0)
    max_stagnation: int = Field(3, ge=1)
    seed_randomness: float = Field(_IMMIGRANT_RANDOMNESS, ge=0.0, le=1.0)

    model_config = ConfigDict(extra="ignore", frozen=True)


def team_composition(lineup: Lineup) -> Tuple[Tuple[str, int], ...]:
    counts = Counter(player.team for player in (lineup.captain, *lineup.flex))
    return tuple(sorted(counts.items()))


def combined_rank(item: ScoredLineup) -> float:
    return item.nexus_score * _NEXUS_WEIGHT + item.fitness * _FITNESS_WEIGHT


def keep_best(archive: Dict[Tuple[str, ...], ScoredLineup], items: Sequence[ScoredLineup]) -> None:
    """Store each item under its signature unless a better-ranked variant is there."""

    for item in items:
        current = archive.get(item.signature)
        if current is None or combined_rank(item) > combined_rank(current):
            archive[item.signature] = item


def roulette_select(rng: random.Random, population: Sequence[ScoredLineup]) -> ScoredLineup:
    """Fitness-proportional selection; fitness is shifted to be positive."""

    floor = min(item.fitness for item in population)
    weights = [item.fitness - floor + 1.0 for item in population]
    return rng.choices(list(population), weights=weights, k=1)[0]


def select_diverse(candidates: Sequence[ScoredLineup], count: int, diversity_weight: float) -> List[ScoredLineup]:
    """Greedy final selection penalising repeated team compositions."""

    ranked = unique_by_signature(sorted(candidates, key=combined_rank, reverse=True))
    remaining = [(item, combined_rank(item), team_composition(item.lineup)) for item in ranked]
    selected: List[ScoredLineup] = []
    seen: Counter = Counter()
    while remaining and len(selected) < count:
        best_index = 0
        best_value = -math.inf
        for index, (_, rank, composition) in enumerate(remaining):
            value = rank - diversity_weight * _COMPOSITION_PENALTY * seen[composition]
            if value > best_value:
                best_index, best_value = index, value
        choice, _, composition = remaining.pop(best_index)
        seen[composition] += 1
        selected.append(choice)
    return selected


class EvolutionaryGenerator(LineupGenerator):
    algorithm = Algorithm.EVOLUTIONARY
    config_model = EvolutionConfig

    def _generate(
        self,
        count: int,
        rng: random.Random,
        progress: ProgressSink,
        token: CancellationToken,
    ) -> GenerationResult:
        assert self.pool is not None
        config: EvolutionConfig = self.config
        tracker = self._new_tracker()
        size = max(config.population_size, 2)

        population = self._seed_population(rng, size, tracker)
        if not population:
            raise AlgorithmFailure("Unable to build an initial population", stage="seed", algorithm=self.name)
        archive: Dict[Tuple[str, ...], ScoredLineup] = {}
        keep_best(archive, population)

        best_fitness = max(item.fitness for item in population)
        stagnation = 0
        restarts = 0
        history: List[Dict[str, float]] = []
        elite_count = max(1, int(size * config.elite_ratio))

        for generation in range(config.generations):
            token.raise_if_cancelled("evolution_generation", self.name)
            population.sort(key=lambda item: item.fitness, reverse=True)
            current_best = population[0].fitness
            if current_best > best_fitness:
                best_fitness = current_best
                stagnation = 0
            else:
                stagnation += 1

            elites = population[:elite_count]
            if stagnation >= config.max_stagnation:
                logger.debug("Restarting population at generation %s after stagnation", generation)
                population = elites + self._seed_population(rng, size - len(elites), tracker)
                restarts += 1
                stagnation = 0
            else:
                population = elites + self._offspring(rng, population, size - len(elites), tracker)

            keep_best(archive, population)
            history.append(
                {
                    "generation": generation,
                    "best_fitness": current_best,
                    "average_fitness": sum(item.fitness for item in population) / len(population),
                }
            )
            progress.progress((generation + 1) / config.generations * 90.0, "evolving")

        existing = self._existing_signatures()
        candidates = [item for item in archive.values() if item.signature not in existing]
        lineups = select_diverse(candidates, count, config.diversity_weight)
        lineups.sort(key=combined_rank, reverse=True)
        if len(lineups) < count:
            logger.warning("Evolution produced %s/%s distinct lineups", len(lineups), count)
        logger.info(
            "Evolution finished after %s generations (%s restarts, best fitness %.2f)",
            config.generations,
            restarts,
            best_fitness,
        )
        return GenerationResult(
            lineups=lineups,
            summary=summarize(
                lineups,
                self.name,
                generations=config.generations,
                population_size=size,
                restarts=restarts,
                best_fitness=best_fitness,
                evaluated_lineups=len(archive),
                fitness_history=history,
            ),
        )

    def _evaluate(self, lineup: Lineup, tracker: ExposureTracker) -> ScoredLineup:
        scored = self._score(lineup)
        bonus = tracker.constraint_score(lineup) if tracker.has_constraints else 0.0
        return scored.tagged(fitness=scored.nexus_score + bonus)

    def _seed_population(self, rng: random.Random, size: int, tracker: ExposureTracker) -> List[ScoredLineup]:
        assert self.pool is not None
        population: List[ScoredLineup] = []
        attempts = size * 10
        while len(population) < size and attempts > 0:
            attempts -= 1
            lineup = self.pool.build_lineup(rng, randomness=self.config.seed_randomness)
            if lineup is not None:
                population.append(self._evaluate(lineup, tracker))
        return population

    def _offspring(
        self,
        rng: random.Random,
        parents: Sequence[ScoredLineup],
        size: int,
        tracker: ExposureTracker,
    ) -> List[ScoredLineup]:
        assert self.pool is not None
        children: List[ScoredLineup] = []
        attempts = size * 5
        while len(children) < size and attempts > 0:
            attempts -= 1
            first = roulette_select(rng, parents)
            second = roulette_select(rng, parents)
            child = self.crossover(rng, first.lineup, second.lineup)
            if rng.random() < self.config.mutation_rate:
                child = self.mutate(rng, child)
            repaired = self.pool.repair(child)
            if repaired is None:
                repaired = self.pool.build_lineup(rng, randomness=self.config.seed_randomness)
            if repaired is not None:
                children.append(self._evaluate(repaired, tracker))
        return children

    def crossover(self, rng: random.Random, first: Lineup, second: Lineup) -> Lineup:
        """Inherit the captain, each flex slot and the TEAM slot independently."""

        captain = first.captain if rng.random() < 0.5 else second.captain
        flex = tuple(a if rng.random() < 0.5 else b for a, b in zip(first.flex, second.flex))
        team = first.team if rng.random() < 0.5 else second.team
        return Lineup(captain=captain, flex=flex, team=team, captain_multiplier=first.captain_multiplier)

    def mutate(self, rng: random.Random, lineup: Lineup) -> Lineup:
        """Replace one slot with a random position-eligible alternative."""

        assert self.pool is not None
        slots: List[Optional[str]] = [None, *self.rules.required_positions]
        if lineup.team is not None and len(self.pool.team_entries) > 1:
            slots.append("TEAM")
        slot = rng.choice(slots)

        if slot is None:
            used = lineup.player_ids
            options = [p for p in self.pool.captain_candidates if p.player_id not in used]
            return lineup.with_captain(rng.choice(options)) if options else lineup
        if slot == "TEAM":
            options = [p for p in self.pool.team_entries if p.player_id != lineup.team.player_id]
            return lineup.with_team(rng.choice(options)) if options else lineup
        options = self.pool.alternatives(lineup, slot)
        return lineup.with_flex(slot, rng.choice(options)) if options else lineup
