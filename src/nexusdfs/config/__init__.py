"""Configuration helpers for roster rules, strategy presets and runtime settings."""

from .presets import ALGORITHMS, StrategyPreset, get_preset, iter_presets, merge_config, preset_names
from .roster import DEFAULT_RULES, RosterRules, get_rules, iter_rules
from .settings import OptimizerSettings

__all__ = [
    "ALGORITHMS",
    "DEFAULT_RULES",
    "OptimizerSettings",
    "RosterRules",
    "StrategyPreset",
    "get_preset",
    "get_rules",
    "iter_presets",
    "iter_rules",
    "merge_config",
    "preset_names",
]
