"""Shared generator contract, result types and ranking helpers."""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Type
from uuid import uuid4

from pydantic import BaseModel

from nexusdfs.config.roster import DEFAULT_RULES, RosterRules
from nexusdfs.errors import AlgorithmFailure, NotInitialized, OptimizerError, ValidationFailure
from nexusdfs.models import ExposureSettings, Lineup, PlayerRecord, TeamStack
from nexusdfs.progress import CancellationToken, NullProgress, ProgressSink
from nexusdfs.scoring import NexusScore, average_ownership, diversity_score, score_lineup
from nexusdfs.validation import ValidationReport, validate_player_pool

from .exposure import ExposureTracker
from .pool import PlayerPool


logger = logging.getLogger(__name__)


class Algorithm(str, Enum):
    STOCHASTIC = "stochastic"
    EVOLUTIONARY = "evolutionary"
    ANNEALING = "annealing"


@dataclass(frozen=True)
class ScoredLineup:
    lineup: Lineup
    score: NexusScore
    source_algorithm: Optional[str] = None
    fitness: float = 0.0
    annealing_score: float = 0.0
    barbell_category: Optional[str] = None
    stack_type: Optional[str] = None
    lineup_id: str = field(default_factory=lambda: uuid4().hex[:12])

    @property
    def nexus_score(self) -> float:
        return self.score.total

    @property
    def roi(self) -> float:
        return self.score.roi

    @property
    def avg_ownership(self) -> float:
        return average_ownership(self.lineup)

    @property
    def signature(self) -> Tuple[str, ...]:
        return self.lineup.signature

    @property
    def rank_score(self) -> float:
        """First non-zero of NexusScore, ROI, fitness, annealing score."""

        for value in (self.nexus_score, self.roi, self.fitness, self.annealing_score):
            if value:
                return value
        return 0.0

    def tagged(self, **changes: Any) -> "ScoredLineup":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.lineup.to_dict()
        payload.update(
            {
                "lineup_id": self.lineup_id,
                "nexus_score": round(self.nexus_score, 3),
                "roi": round(self.roi, 3),
                "components": dict(self.score.components),
                "source_algorithm": self.source_algorithm,
                "fitness": self.fitness,
                "annealing_score": self.annealing_score,
                "avg_ownership": round(self.avg_ownership, 3),
                "barbell_category": self.barbell_category,
                "stack_type": self.stack_type,
            }
        )
        return payload


@dataclass
class GenerationResult:
    lineups: List[ScoredLineup]
    summary: Dict[str, Any] = field(default_factory=dict)


def tiebreak_key(item: ScoredLineup) -> Tuple[float, int, Tuple[str, ...]]:
    """Higher NexusScore first, then lower salary, then player-id ordering."""

    return (-item.nexus_score, item.lineup.salary, item.signature)


def unique_by_signature(
    items: Iterable[ScoredLineup],
    limit: Optional[int] = None,
    exclude: Optional[Set[Tuple[str, ...]]] = None,
) -> List[ScoredLineup]:
    """Keep the first lineup per signature, preserving order."""

    seen: Set[Tuple[str, ...]] = set(exclude or ())
    result: List[ScoredLineup] = []
    for item in items:
        if item.signature in seen:
            continue
        seen.add(item.signature)
        result.append(item)
        if limit is not None and len(result) >= limit:
            break
    return result


def summarize(lineups: Sequence[ScoredLineup], algorithm: str, **extra: Any) -> Dict[str, Any]:
    count = len(lineups)
    summary: Dict[str, Any] = {
        "algorithm": algorithm,
        "lineup_count": count,
        "average_nexus_score": sum(item.nexus_score for item in lineups) / count if count else 0.0,
        "average_roi": sum(item.roi for item in lineups) / count if count else 0.0,
        "best_nexus_score": max((item.nexus_score for item in lineups), default=0.0),
        "average_salary": sum(item.lineup.salary for item in lineups) / count if count else 0.0,
        "diversity_score": diversity_score([item.lineup for item in lineups]),
    }
    summary.update(extra)
    return summary


class LineupGenerator(ABC):
    """Common lifecycle for the candidate generators.

    ``initialize`` validates and indexes the pool; ``run`` produces lineups
    and may be called repeatedly; ``cancel`` stops the in-flight run at its
    next loop boundary.
    """

    algorithm: ClassVar[Algorithm]
    config_model: ClassVar[Type[BaseModel]]

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        *,
        rules: RosterRules = DEFAULT_RULES,
        seed: Optional[int] = None,
        max_workers: int = 1,
    ):
        self.rules = rules
        self.config = self.config_model.model_validate(dict(config or {}))
        self.seed = seed
        self.max_workers = max(1, max_workers)
        self.pool: Optional[PlayerPool] = None
        self.exposure = ExposureSettings()
        self.existing_lineups: Tuple[Lineup, ...] = ()
        self.team_stacks: Tuple[TeamStack, ...] = ()
        self._token = CancellationToken()
        self._active_token: Optional[CancellationToken] = None
        self._runs = 0

    @property
    def name(self) -> str:
        return self.algorithm.value

    @property
    def is_initialized(self) -> bool:
        return self.pool is not None

    def configure(self, overrides: Optional[Mapping[str, Any]]) -> None:
        if not overrides:
            return
        merged = {**self.config.model_dump(), **dict(overrides)}
        self.config = self.config_model.model_validate(merged)

    def initialize(
        self,
        players: Iterable[PlayerRecord | Mapping[str, Any]],
        exposure: Optional[ExposureSettings] = None,
        existing_lineups: Iterable[Lineup] = (),
        team_stacks: Iterable[TeamStack] = (),
        *,
        report: Optional[ValidationReport] = None,
    ) -> ValidationReport:
        report = report or validate_player_pool(players, self.rules)
        if not report.is_valid:
            raise ValidationFailure(report, algorithm=self.name)
        self.pool = PlayerPool(report.players, self.rules)
        self.exposure = exposure or ExposureSettings()
        self.existing_lineups = tuple(existing_lineups)
        self.team_stacks = tuple(team_stacks)
        logger.info("%s generator initialized with %s players", self.name, len(self.pool))
        return report

    def cancel(self) -> None:
        self._token.cancel()
        if self._active_token is not None:
            self._active_token.cancel()

    def run(
        self,
        count: int,
        progress: Optional[ProgressSink] = None,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        if self.pool is None:
            raise NotInitialized(self.name)
        if count < 1:
            raise ValueError("count must be a positive integer")

        if token is None:
            self._token.reset()
            token = self._token
        self._active_token = token
        sink = progress or NullProgress()
        rng = random.Random(self._next_seed())
        sink.progress(0.0, f"{self.name}_start")
        try:
            result = self._generate(count, rng, sink, token)
        except OptimizerError:
            raise
        except Exception as exc:
            logger.exception("%s generator failed", self.name)
            raise AlgorithmFailure(str(exc) or type(exc).__name__, stage="run", algorithm=self.name) from exc
        finally:
            self._active_token = None
        sink.progress(100.0, f"{self.name}_complete")
        return result

    def _next_seed(self) -> Optional[int]:
        self._runs += 1
        if self.seed is None:
            return None
        return self.seed + self._runs - 1

    def _new_tracker(self) -> ExposureTracker:
        return ExposureTracker(self.exposure, self.existing_lineups)

    def _existing_signatures(self) -> Set[Tuple[str, ...]]:
        return {lineup.signature for lineup in self.existing_lineups}

    def _score(self, lineup: Lineup, **tags: Any) -> ScoredLineup:
        return ScoredLineup(
            lineup=lineup,
            score=score_lineup(lineup, self.rules),
            source_algorithm=self.name,
            **tags,
        )

    @abstractmethod
    def _generate(
        self,
        count: int,
        rng: random.Random,
        progress: ProgressSink,
        token: CancellationToken,
    ) -> GenerationResult:
        raise NotImplementedError
