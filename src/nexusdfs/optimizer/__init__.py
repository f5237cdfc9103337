"""Lineup generators, hybrid orchestration and the optimizer facade."""

from .annealing import AnnealingConfig, AnnealingGenerator
from .base import Algorithm, GenerationResult, LineupGenerator, ScoredLineup
from .evolutionary import EvolutionConfig, EvolutionaryGenerator
from .hybrid import HybridOrchestrator
from .portfolio import PortfolioConfig, build_portfolio
from .service import NexusOptimizer, OptimizationOutcome, OptimizationRun
from .stochastic import StochasticConfig, StochasticGenerator
from .strategy import ConstraintAnalysis, analyze_constraints, select_strategy

__all__ = [
    "Algorithm",
    "AnnealingConfig",
    "AnnealingGenerator",
    "ConstraintAnalysis",
    "EvolutionConfig",
    "EvolutionaryGenerator",
    "GenerationResult",
    "HybridOrchestrator",
    "LineupGenerator",
    "NexusOptimizer",
    "OptimizationOutcome",
    "OptimizationRun",
    "PortfolioConfig",
    "ScoredLineup",
    "StochasticConfig",
    "StochasticGenerator",
    "analyze_constraints",
    "build_portfolio",
    "select_strategy",
]
