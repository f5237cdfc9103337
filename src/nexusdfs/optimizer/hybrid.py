"""Hybrid orchestration of several generators under a percentage distribution."""

from __future__ import annotations

import logging
import math
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from nexusdfs.errors import AlgorithmFailure, OptimizationCancelled, OptimizerError
from nexusdfs.progress import CancellationToken, NullProgress, ProgressSink, ScaledProgress
from nexusdfs.scoring import diversity_score

from .base import Algorithm, GenerationResult, LineupGenerator, ScoredLineup, unique_by_signature


logger = logging.getLogger(__name__)

DistributionKey = Union[str, Algorithm]


def _as_algorithm(key: DistributionKey) -> Algorithm:
    if isinstance(key, Algorithm):
        return key
    try:
        return Algorithm(str(key).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown algorithm {key!r} in distribution") from None


def allocate(count: int, distribution: Mapping[DistributionKey, float]) -> Dict[Algorithm, int]:
    """Per-algorithm lineup counts, ``round(count * share)`` half-up, zeros dropped."""

    allocations: Dict[Algorithm, int] = {}
    for key, share in distribution.items():
        requested = int(math.floor(count * float(share) + 0.5))
        if requested > 0:
            allocations[_as_algorithm(key)] = requested
    return allocations


def combine_results(candidates: Iterable[ScoredLineup], count: int) -> List[ScoredLineup]:
    """Rank by the first non-zero score, drop signature duplicates, truncate."""

    ranked = sorted(candidates, key=lambda item: item.rank_score, reverse=True)
    return unique_by_signature(ranked, limit=count)


class HybridOrchestrator:
    """Runs the allocated generators and merges their lineups.

    A failing generator is logged and skipped; cancellation always propagates.
    """

    def __init__(
        self,
        generators: Mapping[Algorithm, LineupGenerator],
        *,
        parallel: bool = False,
        max_workers: int = 10,
    ):
        self.generators = dict(generators)
        self.parallel = parallel
        self.max_workers = max(1, max_workers)

    def run(
        self,
        count: int,
        distribution: Mapping[DistributionKey, float],
        progress: Optional[ProgressSink] = None,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        sink = progress or NullProgress()
        token = token or CancellationToken()
        allocations = allocate(count, distribution)
        plan = [(algorithm, requested) for algorithm, requested in allocations.items() if requested > 0]
        if not plan:
            logger.warning("Hybrid distribution allocated no lineups for count=%s", count)

        step = 95.0 / max(len(plan), 1)
        slices = {algorithm: ScaledProgress(sink, index * step, (index + 1) * step, algorithm.value) for index, (algorithm, _) in enumerate(plan)}
        failures: List[Dict[str, Any]] = []
        produced: List[ScoredLineup] = []
        per_algorithm: Dict[str, Dict[str, Any]] = {}

        def execute(algorithm: Algorithm, requested: int) -> Tuple[Algorithm, Optional[GenerationResult]]:
            token.raise_if_cancelled("hybrid_algorithm", algorithm.value)
            generator = self.generators.get(algorithm)
            if generator is None:
                raise AlgorithmFailure("Generator not available", stage="hybrid", algorithm=algorithm.value)
            sink.status(f"Running {algorithm.value} optimization ({requested} lineups)...")
            return algorithm, generator.run(requested, progress=slices[algorithm], token=token)

        def collect(algorithm: Algorithm, result: Optional[GenerationResult]) -> None:
            if result is None:
                return
            produced.extend(
                item if item.source_algorithm else item.tagged(source_algorithm=algorithm.value)
                for item in result.lineups
            )
            per_algorithm[algorithm.value] = result.summary

        def record_failure(algorithm: Algorithm, exc: OptimizerError) -> None:
            logger.warning("Skipping %s in hybrid run: %s", algorithm.value, exc)
            failures.append({"algorithm": algorithm.value, "error": str(exc)})

        if self.parallel and len(plan) > 1:
            with ThreadPoolExecutor(max_workers=min(len(plan), self.max_workers)) as executor:
                futures = [(algorithm, executor.submit(execute, algorithm, requested)) for algorithm, requested in plan]
                for algorithm, future in futures:
                    try:
                        collect(*future.result())
                    except OptimizationCancelled:
                        for _, pending in futures:
                            pending.cancel()
                        raise
                    except OptimizerError as exc:
                        record_failure(algorithm, exc)
        else:
            for algorithm, requested in plan:
                try:
                    collect(*execute(algorithm, requested))
                except OptimizationCancelled:
                    raise
                except OptimizerError as exc:
                    record_failure(algorithm, exc)
                sink.progress(slices[algorithm].end, f"{algorithm.value}_completed")

        token.raise_if_cancelled("hybrid_combine")
        if plan and len(failures) == len(plan):
            raise AlgorithmFailure(
                "All hybrid algorithms failed",
                stage="hybrid",
                detail="; ".join(f"{entry['algorithm']}: {entry['error']}" for entry in failures),
            )

        sink.status("Combining and ranking results...")
        lineups = combine_results(produced, count)
        sink.progress(100.0, "hybrid_complete")
        logger.info(
            "Hybrid run produced %s lineups from %s candidates (%s failures)",
            len(lineups),
            len(produced),
            len(failures),
        )
        return GenerationResult(
            lineups=lineups,
            summary=hybrid_summary(lineups, distribution, allocations, failures, per_algorithm, len(produced)),
        )


def hybrid_summary(
    lineups: List[ScoredLineup],
    distribution: Mapping[DistributionKey, float],
    allocations: Mapping[Algorithm, int],
    failures: List[Dict[str, Any]],
    per_algorithm: Mapping[str, Mapping[str, Any]],
    candidates: int,
) -> Dict[str, Any]:
    count = len(lineups)
    actual = Counter(item.source_algorithm or "unknown" for item in lineups)
    return {
        "algorithm": "hybrid",
        "distribution": {_as_algorithm(key).value: float(share) for key, share in distribution.items()},
        "allocations": {algorithm.value: requested for algorithm, requested in allocations.items()},
        "actual_distribution": dict(actual),
        "lineup_count": count,
        "unique_lineups": count,
        "candidate_count": candidates,
        "average_roi": sum(item.roi for item in lineups) / count if count else 0.0,
        "average_nexus_score": sum(item.nexus_score for item in lineups) / count if count else 0.0,
        "diversity_score": diversity_score([item.lineup for item in lineups]),
        "failures": failures,
        "algorithms": {name: dict(summary) for name, summary in per_algorithm.items()},
    }
