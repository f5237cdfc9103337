"""Static strategy presets understood by the optimizer service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional


ALGORITHMS = ("stochastic", "evolutionary", "annealing")
TARGETS = ALGORITHMS + ("hybrid", "auto")


@dataclass(frozen=True)
class StrategyPreset:
    key: str
    name: str
    description: str
    algorithm: str
    config: Mapping[str, Any] = field(default_factory=dict)
    distribution: Optional[Mapping[str, float]] = None
    portfolio: bool = False
    usage: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "algorithm": self.algorithm,
            "config": dict(self.config),
            "distribution": dict(self.distribution) if self.distribution else None,
            "portfolio": self.portfolio,
            "usage": self.usage,
        }


BALANCED_DISTRIBUTION: Mapping[str, float] = {
    "stochastic": 0.6,
    "evolutionary": 0.3,
    "annealing": 0.1,
}


_PRESETS: Dict[str, StrategyPreset] = {
    "recommended": StrategyPreset(
        key="recommended",
        name="Recommended",
        description="Smart algorithm selection based on your contest and constraints",
        algorithm="auto",
        usage="Auto-selects the best approach for your specific situation",
    ),
    "balanced": StrategyPreset(
        key="balanced",
        name="Balanced",
        description="Reliable lineups with good upside potential",
        algorithm="hybrid",
        distribution=BALANCED_DISTRIBUTION,
        config={
            "stochastic": {"iterations": 8000, "randomness": 0.5},
            "evolutionary": {"generations": 30, "population_size": 60},
        },
        usage="General purpose optimization for most contests",
    ),
    "cash_game": StrategyPreset(
        key="cash_game",
        name="Cash Game",
        description="Consistent scoring for cash games and double-ups",
        algorithm="stochastic",
        config={"stochastic": {"iterations": 12000, "randomness": 0.4}},
        usage="Optimized for consistent cashing in cash games",
    ),
    "tournament": StrategyPreset(
        key="tournament",
        name="Tournament/GPP",
        description="High-ceiling lineups for large field tournaments",
        algorithm="evolutionary",
        config={
            "evolutionary": {
                "population_size": 120,
                "generations": 60,
                "mutation_rate": 0.2,
                "diversity_weight": 0.4,
            },
        },
        usage="Designed for GPPs and large tournaments",
    ),
    "contrarian": StrategyPreset(
        key="contrarian",
        name="Contrarian",
        description="Low-owned players and unique stacks for differentiation",
        algorithm="evolutionary",
        config={
            "evolutionary": {
                "population_size": 100,
                "generations": 50,
                "mutation_rate": 0.25,
            },
        },
        usage="Maximum differentiation from the field",
    ),
    "constraint_focused": StrategyPreset(
        key="constraint_focused",
        name="Constraint Optimizer",
        description="Perfect for complex exposure and stacking requirements",
        algorithm="annealing",
        config={
            "annealing": {
                "initial_temperature": 1500.0,
                "max_iterations": 15000,
                "neighborhood_size": 8,
                "exposure_weight": 3.0,
            },
        },
        usage="Best when you have detailed exposure constraints",
    ),
    "portfolio": StrategyPreset(
        key="portfolio",
        name="Barbell Portfolio",
        description="Diversified batch split across chalky, contrarian and balanced lineups",
        algorithm="hybrid",
        distribution=BALANCED_DISTRIBUTION,
        portfolio=True,
        config={"portfolio": {"portfolio_size": 20, "bulk_multiplier": 25}},
        usage="Multi-entry tournaments that want risk-profile diversification",
    ),
}


def iter_presets() -> Iterable[StrategyPreset]:
    """Return an iterator of all configured presets."""

    return _PRESETS.values()


def preset_names() -> tuple[str, ...]:
    return tuple(_PRESETS)


def get_preset(key: str) -> StrategyPreset:
    """Fetch a preset by key, raising KeyError if missing."""

    if key not in _PRESETS:
        raise KeyError(f"No strategy preset named {key!r}")
    return _PRESETS[key]


def merge_config(base: Mapping[str, Any], override: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge ``override`` into ``base`` one level deep for per-algorithm sections."""

    merged: Dict[str, Any] = {key: dict(value) if isinstance(value, Mapping) else value for key, value in base.items()}
    for key, value in (override or {}).items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = dict(value) if isinstance(value, Mapping) else value
    return merged
