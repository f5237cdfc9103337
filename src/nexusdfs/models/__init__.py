"""Domain records shared across the optimizer."""

from .exposure import ContestInfo, ExposureBand, ExposureSettings, PlayerExposure, TeamExposure
from .lineup import Lineup
from .player import POSITIONS, PlayerRecord, Position, TeamStack

__all__ = [
    "ContestInfo",
    "ExposureBand",
    "ExposureSettings",
    "Lineup",
    "POSITIONS",
    "PlayerExposure",
    "PlayerRecord",
    "Position",
    "TeamExposure",
    "TeamStack",
]
