"""Optimizer facade: validate a pool, resolve a strategy and run the generators."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, Union
from uuid import uuid4

from nexusdfs.config.presets import BALANCED_DISTRIBUTION, StrategyPreset, iter_presets, merge_config, preset_names
from nexusdfs.config.roster import DEFAULT_RULES, RosterRules
from nexusdfs.config.settings import OptimizerSettings
from nexusdfs.errors import NotInitialized, OptimizationCancelled, OptimizerError, ValidationFailure
from nexusdfs.learning import PerformanceRecord, PerformanceTracker
from nexusdfs.models import ContestInfo, ExposureSettings, Lineup, PlayerRecord, TeamStack
from nexusdfs.persistence import SessionStore
from nexusdfs.progress import CallbackProgress, CancellationToken, ProgressCallback, StatusCallback
from nexusdfs.validation import ValidationReport, validate_player_pool, validate_team_stacks

from .annealing import AnnealingGenerator
from .base import Algorithm, GenerationResult, LineupGenerator, ScoredLineup
from .evolutionary import EvolutionaryGenerator
from .hybrid import HybridOrchestrator
from .portfolio import PortfolioConfig, build_portfolio
from .stochastic import StochasticGenerator
from .strategy import ConstraintAnalysis, analyze_constraints, describe_strategies, recommendations, resolve_strategy


logger = logging.getLogger(__name__)

GENERATORS: Dict[Algorithm, Type[LineupGenerator]] = {
    Algorithm.STOCHASTIC: StochasticGenerator,
    Algorithm.EVOLUTIONARY: EvolutionaryGenerator,
    Algorithm.ANNEALING: AnnealingGenerator,
}


@dataclass
class OptimizationRun:
    """State scoped to one ``initialize`` call; never shared between runs."""

    report: ValidationReport
    exposure: ExposureSettings
    contest: ContestInfo
    analysis: ConstraintAnalysis
    existing_lineups: Tuple[Lineup, ...] = ()
    team_stacks: Tuple[TeamStack, ...] = ()
    token: CancellationToken = field(default_factory=CancellationToken)
    run_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "initialized"
    batches: int = 0

    @property
    def players(self) -> List[PlayerRecord]:
        return self.report.players


@dataclass
class OptimizationOutcome:
    lineups: List[ScoredLineup]
    summary: Dict[str, Any]
    strategy_used: str
    recommendations: List[Dict[str, str]]
    run_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "strategy_used": self.strategy_used,
            "lineups": [item.to_dict() for item in self.lineups],
            "summary": dict(self.summary),
            "recommendations": list(self.recommendations),
        }


def _coerce_exposure(exposure: Union[ExposureSettings, Mapping[str, Any], None]) -> ExposureSettings:
    if exposure is None:
        return ExposureSettings()
    if isinstance(exposure, ExposureSettings):
        return exposure
    return ExposureSettings.model_validate(exposure)


def _coerce_contest(contest: Union[ContestInfo, Mapping[str, Any], None]) -> ContestInfo:
    if contest is None:
        return ContestInfo()
    if isinstance(contest, ContestInfo):
        return contest
    return ContestInfo.model_validate(contest)


class NexusOptimizer:
    """Entry point used by excluded collaborators (CLI, HTTP, UI).

    ``initialize`` opens a fresh :class:`OptimizationRun`; each ``optimize``
    builds new generators from that run's validated pool so repeated batches
    never share generator state.
    """

    def __init__(
        self,
        *,
        rules: RosterRules = DEFAULT_RULES,
        settings: Optional[OptimizerSettings] = None,
        tracker: Optional[PerformanceTracker] = None,
        sessions: Optional[SessionStore] = None,
        seed: Optional[int] = None,
    ):
        self.rules = rules
        self.settings = settings or OptimizerSettings.from_env()
        self.seed = seed if seed is not None else self.settings.seed
        self.tracker = tracker if tracker is not None else PerformanceTracker(history_size=self.settings.history_size)
        self.sessions = sessions
        self.progress = CallbackProgress()
        self._run: Optional[OptimizationRun] = None
        self._lock = threading.Lock()
        self._stats = {"runs": 0, "batches": 0, "lineups_generated": 0, "failures": 0, "cancelled": 0}

    def on_progress(self, callback: Optional[ProgressCallback]) -> None:
        self.progress.on_progress = callback

    def on_status(self, callback: Optional[StatusCallback]) -> None:
        self.progress.on_status = callback

    @property
    def current_run(self) -> Optional[OptimizationRun]:
        return self._run

    def validate(self, players: Optional[Iterable[Union[PlayerRecord, Mapping[str, Any]]]]) -> ValidationReport:
        report = validate_player_pool(players, self.rules)
        self.progress.status(report.summary_line())
        return report

    def initialize(
        self,
        players: Optional[Iterable[Union[PlayerRecord, Mapping[str, Any]]]],
        exposure: Union[ExposureSettings, Mapping[str, Any], None] = None,
        existing_lineups: Iterable[Lineup] = (),
        contest: Union[ContestInfo, Mapping[str, Any], None] = None,
        team_stacks: Iterable[Union[TeamStack, Mapping[str, Any]]] = (),
    ) -> Dict[str, Any]:
        self.progress.progress(0.0, "validate")
        report = self.validate(players)
        if not report.is_valid:
            raise ValidationFailure(report)

        stacks_raw = list(team_stacks or [])
        stack_report = validate_team_stacks(stacks_raw, report.players, self.rules)
        if not stack_report.is_valid:
            raise ValidationFailure(stack_report)
        report.warnings.extend(warning for warning in stack_report.warnings if stacks_raw)
        stacks = tuple(entry if isinstance(entry, TeamStack) else TeamStack.model_validate(entry) for entry in stacks_raw)

        exposure_settings = _coerce_exposure(exposure)
        contest_info = _coerce_contest(contest)
        analysis = analyze_constraints(exposure_settings, contest_info)
        run = OptimizationRun(
            report=report,
            exposure=exposure_settings,
            contest=contest_info,
            analysis=analysis,
            existing_lineups=tuple(existing_lineups),
            team_stacks=stacks,
        )
        with self._lock:
            self._run = run
            self._stats["runs"] += 1
        if self.sessions is not None:
            self.sessions.put(run.run_id, run)

        recommended = resolve_strategy("recommended", analysis)
        self.progress.progress(100.0, "initialized")
        logger.info(
            "Initialized run %s: %s players, complexity %.1f, recommended %s",
            run.run_id,
            len(report.players),
            analysis.complexity_score,
            recommended.key,
        )
        return {
            "run_id": run.run_id,
            "recommended_strategy": recommended.key,
            "complexity_score": analysis.complexity_score,
            "available_presets": list(preset_names()),
            "analysis": analysis.to_dict(),
            "validation": report.to_dict(),
        }

    def optimize(
        self,
        count: int,
        strategy: str = "recommended",
        custom_config: Optional[Mapping[str, Any]] = None,
    ) -> OptimizationOutcome:
        run = self._run
        if run is None:
            raise NotInitialized()
        if count < 1:
            raise ValueError("count must be a positive integer")

        preset = resolve_strategy(strategy, run.analysis)
        config = merge_config(preset.config, custom_config)
        run.token.reset()
        run.status = "running"
        self.progress.status(f"Optimizing {count} lineups with the {preset.name} strategy...")
        logger.info("Run %s: optimizing %s lineups with %s (%s)", run.run_id, count, preset.key, preset.algorithm)

        try:
            if preset.portfolio:
                result = self._run_portfolio(run, preset, config, count)
            elif preset.algorithm == "hybrid":
                result = self._run_hybrid(run, preset, config, count)
            else:
                result = self._run_single(run, Algorithm(preset.algorithm), config, count)
        except OptimizationCancelled:
            run.status = "cancelled"
            with self._lock:
                self._stats["cancelled"] += 1
            logger.info("Run %s cancelled", run.run_id)
            raise
        except OptimizerError:
            run.status = "failed"
            with self._lock:
                self._stats["failures"] += 1
            raise

        run.status = "completed"
        run.batches += 1
        with self._lock:
            self._stats["batches"] += 1
            self._stats["lineups_generated"] += len(result.lineups)

        algorithm = "portfolio" if preset.portfolio else preset.algorithm
        summary = dict(result.summary)
        summary.setdefault("lineup_count", len(result.lineups))
        summary["strategy"] = preset.key
        self._learn(run, preset, algorithm, summary, result.lineups)
        hints = recommendations(summary, run.analysis, algorithm)
        self.progress.status(f"Generated {len(result.lineups)} lineups")
        return OptimizationOutcome(
            lineups=result.lineups,
            summary=summary,
            strategy_used=preset.key,
            recommendations=hints,
            run_id=run.run_id,
        )

    def get_strategies(self) -> Dict[str, Dict[str, Any]]:
        run = self._run
        analysis = run.analysis if run is not None else analyze_constraints(None, None)
        performance = {preset.key: self.tracker.strategy_performance(preset.key) for preset in iter_presets()}
        return describe_strategies(analysis, performance)

    def cancel(self) -> None:
        run = self._run
        if run is None:
            return
        run.token.cancel()
        self.progress.status("Cancelling optimization...")

    def stats(self) -> Dict[str, Any]:
        run = self._run
        with self._lock:
            payload: Dict[str, Any] = dict(self._stats)
        payload["run_id"] = run.run_id if run is not None else None
        payload["status"] = run.status if run is not None else "idle"
        payload["learned_weights"] = self.tracker.weights()
        payload["history_size"] = len(self.tracker.history())
        return payload

    def close(self) -> None:
        """Flush pending learning updates."""

        self.tracker.close()

    def _build_generators(
        self,
        run: OptimizationRun,
        config: Mapping[str, Any],
        algorithms: Iterable[Algorithm],
    ) -> Dict[Algorithm, LineupGenerator]:
        generators: Dict[Algorithm, LineupGenerator] = {}
        for index, algorithm in enumerate(algorithms):
            seed = None if self.seed is None else self.seed + run.batches * 100 + index
            generator = GENERATORS[algorithm](
                config.get(algorithm.value),
                rules=self.rules,
                seed=seed,
                max_workers=self.settings.max_workers if self.settings.parallel else 1,
            )
            generator.initialize(
                run.players,
                run.exposure,
                run.existing_lineups,
                run.team_stacks,
                report=run.report,
            )
            generators[algorithm] = generator
        return generators

    def _run_single(self, run: OptimizationRun, algorithm: Algorithm, config: Mapping[str, Any], count: int) -> GenerationResult:
        generator = self._build_generators(run, config, [algorithm])[algorithm]
        return generator.run(count, progress=self.progress, token=run.token)

    def _distribution(self, preset: StrategyPreset, config: Mapping[str, Any]) -> Dict[str, float]:
        custom = config.get("distribution")
        if custom:
            return {str(key): float(share) for key, share in custom.items()}
        distribution = dict(preset.distribution or BALANCED_DISTRIBUTION)
        if self.settings.learning_enabled and self.settings.adapt_distribution:
            distribution = self.tracker.weighted_distribution(distribution)
        return distribution

    def _orchestrator(self, run: OptimizationRun, config: Mapping[str, Any], distribution: Mapping[str, float]) -> HybridOrchestrator:
        algorithms = [Algorithm(key) for key, share in distribution.items() if share > 0]
        generators = self._build_generators(run, config, algorithms)
        return HybridOrchestrator(generators, parallel=self.settings.parallel, max_workers=self.settings.max_workers)

    def _run_hybrid(self, run: OptimizationRun, preset: StrategyPreset, config: Mapping[str, Any], count: int) -> GenerationResult:
        distribution = self._distribution(preset, config)
        orchestrator = self._orchestrator(run, config, distribution)
        return orchestrator.run(count, distribution, progress=self.progress, token=run.token)

    def _run_portfolio(self, run: OptimizationRun, preset: StrategyPreset, config: Mapping[str, Any], count: int) -> GenerationResult:
        portfolio_config = PortfolioConfig.model_validate({**dict(config.get("portfolio") or {}), "portfolio_size": count})
        distribution = self._distribution(preset, config)
        orchestrator = self._orchestrator(run, config, distribution)
        return build_portfolio(orchestrator, distribution, portfolio_config, progress=self.progress, token=run.token)

    def _learn(
        self,
        run: OptimizationRun,
        preset: StrategyPreset,
        algorithm: str,
        summary: Mapping[str, Any],
        lineups: List[ScoredLineup],
    ) -> None:
        if not self.settings.learning_enabled or not lineups:
            return
        record = PerformanceRecord.from_summary(
            preset.key,
            algorithm,
            summary,
            top_lineup_roi=max(item.roi for item in lineups),
            contest_type=run.analysis.contest_type,
            constraint_complexity=run.analysis.complexity_score,
        )
        self.tracker.record_async(record)


__all__ = ["GENERATORS", "NexusOptimizer", "OptimizationOutcome", "OptimizationRun"]
