"""Barbell portfolio construction over a bulk hybrid candidate set."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from nexusdfs.errors import AlgorithmFailure
from nexusdfs.models import Lineup
from nexusdfs.progress import CancellationToken, NullProgress, ProgressSink, ScaledProgress
from nexusdfs.scoring import average_ownership, diversity_score

from .base import GenerationResult, ScoredLineup, unique_by_signature
from .hybrid import DistributionKey, HybridOrchestrator


logger = logging.getLogger(__name__)

HIGH_FLOOR = "high_floor"
HIGH_CEILING = "high_ceiling"
BALANCED = "balanced"
CATEGORIES = (HIGH_FLOOR, HIGH_CEILING, BALANCED)

STACK_4_3 = "4-3"
STACK_4_2_1 = "4-2-1"


class PortfolioConfig(BaseModel):
    portfolio_size: int = Field(20, ge=1)
    bulk_multiplier: int = Field(25, ge=1)
    barbell_distribution: Dict[str, float] = Field(
        default_factory=lambda: {HIGH_FLOOR: 0.35, HIGH_CEILING: 0.35, BALANCED: 0.30}
    )
    high_floor_ownership: float = Field(15.0, ge=0.0, le=100.0)
    high_ceiling_ownership: float = Field(8.0, ge=0.0, le=100.0)

    model_config = ConfigDict(extra="ignore", frozen=True)


def classify_barbell(avg_ownership: float, config: Optional[PortfolioConfig] = None) -> str:
    config = config or PortfolioConfig()
    if avg_ownership >= config.high_floor_ownership:
        return HIGH_FLOOR
    if avg_ownership <= config.high_ceiling_ownership:
        return HIGH_CEILING
    return BALANCED


def classify_stack_type(lineup: Lineup) -> str:
    """Stack shape from sorted per-team counts across every rostered slot.

    The TEAM entry counts toward its team, so a full showdown roster has
    seven slots and can form a literal 4-3 or 4-2-1.
    """

    counts = sorted(lineup.team_counts.values(), reverse=True)
    if len(counts) >= 2 and counts[0] == 4 and counts[1] == 3:
        return STACK_4_3
    if len(counts) >= 3 and counts[:3] == [4, 2, 1]:
        return STACK_4_2_1
    if len(counts) >= 2 and counts[0] >= 4:
        return STACK_4_3
    return STACK_4_2_1


def barbell_targets(size: int, distribution: Mapping[str, float]) -> Dict[str, int]:
    """Integer targets per category; the rounding remainder goes to ``balanced``."""

    targets = {
        category: int(math.floor(size * float(distribution.get(category, 0.0)) + 0.5))
        for category in CATEGORIES
    }
    targets[BALANCED] += size - sum(targets.values())
    if targets[BALANCED] < 0:
        # Over-allocation from rounding; trim the largest category.
        overflow = -targets[BALANCED]
        targets[BALANCED] = 0
        largest = max((HIGH_FLOOR, HIGH_CEILING), key=lambda category: targets[category])
        targets[largest] -= overflow
    return targets


def annotate(item: ScoredLineup, config: Optional[PortfolioConfig] = None) -> ScoredLineup:
    return item.tagged(
        barbell_category=classify_barbell(average_ownership(item.lineup), config),
        stack_type=classify_stack_type(item.lineup),
    )


def select_barbell_portfolio(candidates: Sequence[ScoredLineup], config: Optional[PortfolioConfig] = None) -> List[ScoredLineup]:
    """Pick the top candidates per barbell category, then backfill by score."""

    config = config or PortfolioConfig()
    size = config.portfolio_size
    by_score = sorted(
        (item if item.barbell_category else annotate(item, config) for item in candidates),
        key=lambda item: item.nexus_score,
        reverse=True,
    )
    pool = unique_by_signature(by_score)
    targets = barbell_targets(size, config.barbell_distribution)

    chosen: List[ScoredLineup] = []
    chosen_ids = set()
    for category in CATEGORIES:
        picks = [item for item in pool if item.barbell_category == category][: targets[category]]
        chosen.extend(picks)
        chosen_ids.update(item.lineup_id for item in picks)

    if len(chosen) < size:
        backfill = [item for item in pool if item.lineup_id not in chosen_ids]
        chosen.extend(backfill[: size - len(chosen)])

    chosen.sort(key=lambda item: item.nexus_score, reverse=True)
    return chosen[:size]


def portfolio_summary(portfolio: Sequence[ScoredLineup], config: PortfolioConfig, candidates: int) -> Dict[str, Any]:
    count = len(portfolio)
    scores = [item.nexus_score for item in portfolio]
    ownership = [item.avg_ownership for item in portfolio]
    return {
        "algorithm": "portfolio",
        "portfolio_size": count,
        "requested_size": config.portfolio_size,
        "candidate_count": candidates,
        "barbell_targets": barbell_targets(config.portfolio_size, config.barbell_distribution),
        "barbell_distribution": {category: sum(1 for item in portfolio if item.barbell_category == category) for category in CATEGORIES},
        "stack_distribution": {
            STACK_4_3: sum(1 for item in portfolio if item.stack_type == STACK_4_3),
            STACK_4_2_1: sum(1 for item in portfolio if item.stack_type == STACK_4_2_1),
        },
        "source_algorithms": sorted({item.source_algorithm or "unknown" for item in portfolio}),
        "average_nexus_score": sum(scores) / count if count else 0.0,
        "average_roi": sum(item.roi for item in portfolio) / count if count else 0.0,
        "average_ownership": sum(ownership) / count if count else 0.0,
        "diversity_score": diversity_score([item.lineup for item in portfolio]),
        "nexus_score_range": {"min": min(scores, default=0.0), "max": max(scores, default=0.0)},
        "ownership_range": {"min": min(ownership, default=0.0), "max": max(ownership, default=0.0)},
    }


def build_portfolio(
    orchestrator: HybridOrchestrator,
    distribution: Mapping[DistributionKey, float],
    config: Optional[PortfolioConfig] = None,
    progress: Optional[ProgressSink] = None,
    token: Optional[CancellationToken] = None,
) -> GenerationResult:
    config = config or PortfolioConfig()
    sink = progress or NullProgress()
    bulk = config.portfolio_size * config.bulk_multiplier
    sink.status(f"Generating {bulk} lineup candidates for portfolio...")

    bulk_result = orchestrator.run(bulk, distribution, progress=ScaledProgress(sink, 0.0, 85.0, "bulk"), token=token)
    if not bulk_result.lineups:
        raise AlgorithmFailure("Failed to generate bulk lineups for portfolio", stage="portfolio")

    sink.status("Selecting portfolio lineups with barbell distribution...")
    candidates = [annotate(item, config) for item in bulk_result.lineups]
    portfolio = select_barbell_portfolio(candidates, config)
    summary = portfolio_summary(portfolio, config, len(candidates))
    summary["hybrid"] = bulk_result.summary
    sink.progress(100.0, "portfolio_complete")
    logger.info(
        "Portfolio built: %s lineups (%s) from %s candidates",
        len(portfolio),
        summary["barbell_distribution"],
        len(candidates),
    )
    return GenerationResult(lineups=portfolio, summary=summary)
