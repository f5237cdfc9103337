"""Stochastic sampling generator: many weighted random rosters, keep the best."""

from __future__ import annotations

import logging
import random
from typing import List

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from nexusdfs.progress import CancellationToken, ProgressSink

from .base import Algorithm, GenerationResult, LineupGenerator, ScoredLineup, summarize, tiebreak_key, unique_by_signature


logger = logging.getLogger(__name__)


class StochasticConfig(BaseModel):
    iterations: int = Field(10_000, ge=1)
    # Lower bound on trials per requested lineup.
    trials_per_lineup: int = Field(10, ge=1)
    randomness: float = Field(0.3, ge=0.0, le=1.0)
    batch_size: int = Field(500, ge=1)

    model_config = ConfigDict(extra="ignore", frozen=True)


class StochasticGenerator(LineupGenerator):
    """Sample feasible rosters weighted toward points per salary.

    ``randomness`` 0 is a greedy value pick at every slot; 1 is near uniform.
    Trials run in batches; cancellation and progress are observed between
    batches.
    """

    algorithm = Algorithm.STOCHASTIC
    config_model = StochasticConfig

    def _generate(
        self,
        count: int,
        rng: random.Random,
        progress: ProgressSink,
        token: CancellationToken,
    ) -> GenerationResult:
        assert self.pool is not None
        config: StochasticConfig = self.config
        trials = max(config.iterations, count * config.trials_per_lineup)
        tracker = self._new_tracker()
        weight_fn = tracker.weight if tracker.has_constraints else None

        best: dict[tuple[str, ...], ScoredLineup] = {}
        completed = 0
        failed = 0
        while completed < trials:
            token.raise_if_cancelled("stochastic_batch", self.name)
            batch = min(config.batch_size, trials - completed)
            for _ in range(batch):
                lineup = self.pool.build_lineup(rng, randomness=config.randomness, weight_fn=weight_fn)
                if lineup is None:
                    failed += 1
                    continue
                if weight_fn is not None:
                    tracker.record(lineup)
                scored = self._score(lineup)
                # Same players under another captain or TEAM can score higher.
                current = best.get(lineup.signature)
                if current is None or tiebreak_key(scored) < tiebreak_key(current):
                    best[lineup.signature] = scored
            completed += batch
            progress.progress(completed / trials * 100.0, "stochastic_sampling")

        ranked: List[ScoredLineup] = sorted(best.values(), key=tiebreak_key)
        lineups = unique_by_signature(ranked, limit=count, exclude=self._existing_signatures())
        if len(lineups) < count:
            logger.warning(
                "Stochastic sampling produced %s/%s distinct lineups after %s trials",
                len(lineups),
                count,
                trials,
            )
        logger.info("Stochastic sampling kept %s lineups from %s unique candidates", len(lineups), len(best))
        return GenerationResult(
            lineups=lineups,
            summary=summarize(
                lineups,
                self.name,
                trials=trials,
                failed_trials=failed,
                unique_candidates=len(best),
                randomness=config.randomness,
            ),
        )
