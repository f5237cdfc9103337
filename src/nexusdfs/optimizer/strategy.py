"""Constraint analysis and strategy resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from nexusdfs.config.presets import StrategyPreset, get_preset, iter_presets
from nexusdfs.errors import UnknownStrategy
from nexusdfs.models import ContestInfo, ExposureSettings


_CONTEST_BASE = {
    "cash": 1.0,
    "double_up": 1.0,
    "gpp": 3.0,
    "tournament": 3.0,
    "single_entry": 5.0,
}

CASH_TYPES = frozenset({"cash", "double_up"})
GPP_TYPES = frozenset({"gpp", "tournament"})

_CONSTRAINT_COUNT_LIMIT = 5
_COMPLEXITY_LIMIT = 15.0
_CONTRARIAN_FIELD = 5_000
_SMALL_FIELD = 100
_LARGE_FIELD = 10_000
_SUITABLE_COMPLEXITY = 10.0
_LOW_DIVERSITY = 0.3


@dataclass(frozen=True)
class ConstraintAnalysis:
    complexity_score: float
    constraint_count: int
    player_constraints: int
    team_constraints: int
    stack_constraints: int
    position_constraints: int
    contest_type: str
    field_size: int

    @property
    def has_player_constraints(self) -> bool:
        return self.player_constraints > 0

    @property
    def has_team_constraints(self) -> bool:
        return self.team_constraints > 0

    @property
    def has_stack_constraints(self) -> bool:
        return self.stack_constraints > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complexity_score": self.complexity_score,
            "constraint_count": self.constraint_count,
            "player_constraints": self.player_constraints,
            "team_constraints": self.team_constraints,
            "stack_constraints": self.stack_constraints,
            "position_constraints": self.position_constraints,
            "contest_type": self.contest_type,
            "field_size": self.field_size,
        }


def analyze_constraints(
    exposure: Optional[ExposureSettings],
    contest: Optional[ContestInfo],
) -> ConstraintAnalysis:
    """Summarise exposure settings and contest metadata into a complexity score."""

    exposure = exposure or ExposureSettings()
    contest = contest or ContestInfo()

    players = sum(1 for entry in exposure.players if entry.is_active)
    teams = [entry for entry in exposure.teams if entry.is_active or entry.stack_size is not None]
    stacks = sum(1 for entry in teams if entry.stack_size is not None)
    positions = len(exposure.positions)

    contest_type = contest.normalized_type
    score = 1.5 * players + 2.0 * len(teams) + 3.0 * stacks + 1.0 * positions
    score += _CONTEST_BASE.get(contest_type, 0.0)
    if contest.field_size > 10_000:
        score += 2.0
    elif contest.field_size > 1_000:
        score += 1.0

    return ConstraintAnalysis(
        complexity_score=score,
        constraint_count=players + len(teams) + positions,
        player_constraints=players,
        team_constraints=len(teams),
        stack_constraints=stacks,
        position_constraints=positions,
        contest_type=contest_type,
        field_size=contest.field_size,
    )


def select_strategy(analysis: ConstraintAnalysis) -> str:
    """Resolve the ``recommended`` pseudo-strategy to a concrete preset key."""

    if analysis.constraint_count > _CONSTRAINT_COUNT_LIMIT or analysis.complexity_score > _COMPLEXITY_LIMIT:
        return "constraint_focused"
    if analysis.contest_type in CASH_TYPES:
        return "cash_game"
    if analysis.contest_type in GPP_TYPES:
        return "contrarian" if analysis.field_size > _CONTRARIAN_FIELD else "tournament"
    if analysis.field_size < _SMALL_FIELD:
        return "cash_game"
    if analysis.field_size > _LARGE_FIELD:
        return "contrarian"
    return "balanced"


def resolve_strategy(name: str, analysis: ConstraintAnalysis) -> StrategyPreset:
    key = select_strategy(analysis) if name == "recommended" else name
    try:
        return get_preset(key)
    except KeyError:
        raise UnknownStrategy(name) from None


def is_strategy_suitable(name: str, analysis: ConstraintAnalysis) -> bool:
    try:
        get_preset(name)
    except KeyError:
        return False
    if name == "cash_game":
        return analysis.contest_type in CASH_TYPES
    if name in ("tournament", "contrarian"):
        return analysis.contest_type in GPP_TYPES
    if name == "constraint_focused":
        return analysis.complexity_score > _SUITABLE_COMPLEXITY
    return True


def describe_strategies(
    analysis: ConstraintAnalysis,
    performance: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, Dict[str, Any]]:
    """Preset table annotated with suitability and historical performance."""

    performance = performance or {}
    result: Dict[str, Dict[str, Any]] = {}
    for preset in iter_presets():
        entry = preset.to_dict()
        entry["recommended"] = preset.key == "recommended"
        entry["suitable"] = is_strategy_suitable(preset.key, analysis)
        entry["performance"] = dict(performance.get(preset.key, {}))
        if preset.key == "recommended":
            entry["resolves_to"] = select_strategy(analysis)
        result[preset.key] = entry
    return result


def recommendations(
    summary: Mapping[str, Any],
    analysis: ConstraintAnalysis,
    algorithm: str,
) -> List[Dict[str, str]]:
    """Post-run hints derived from the batch summary."""

    hints: List[Dict[str, str]] = []
    if summary.get("diversity_score", 1.0) < _LOW_DIVERSITY:
        hints.append(
            {
                "type": "warning",
                "message": "Low lineup diversity detected. Consider the tournament or contrarian strategy.",
            }
        )
    if analysis.constraint_count > _CONSTRAINT_COUNT_LIMIT and algorithm != "annealing":
        hints.append(
            {
                "type": "info",
                "message": "Complex constraints detected. The constraint_focused strategy may satisfy them better.",
            }
        )
    if summary.get("average_roi", 0.0) < 0 and analysis.contest_type == "gpp":
        hints.append(
            {
                "type": "suggestion",
                "message": "Negative average ROI. Try a higher-variance strategy for tournament play.",
            }
        )
    return hints
