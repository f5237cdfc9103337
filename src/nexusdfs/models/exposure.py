"""Exposure settings and contest metadata supplied by callers."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class ExposureBand(BaseModel):
    """Minimum/maximum share of a batch, expressed as percentages."""

    min: float = Field(0.0, ge=0.0, le=100.0)
    max: float = Field(100.0, ge=0.0, le=100.0)

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        return self.min > 0.0 or self.max < 100.0

    def contains(self, pct: float) -> bool:
        return self.min <= pct <= self.max


class PlayerExposure(ExposureBand):
    player_id: str = Field(..., min_length=1)


class TeamExposure(ExposureBand):
    team: str = Field(..., min_length=1)
    stack_size: Optional[int] = Field(None, ge=1, le=6)


class ExposureSettings(BaseModel):
    players: List[PlayerExposure] = Field(default_factory=list)
    teams: List[TeamExposure] = Field(default_factory=list)
    positions: Dict[str, ExposureBand] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def player_band(self, player_id: str) -> Optional[ExposureBand]:
        for entry in self.players:
            if entry.player_id == player_id:
                return entry
        return None

    def team_band(self, team: str) -> Optional[TeamExposure]:
        for entry in self.teams:
            if entry.team == team:
                return entry
        return None


class ContestInfo(BaseModel):
    """Contest metadata used by strategy selection and recommendations."""

    type: str = "gpp"
    field_size: int = Field(1000, ge=1)
    entry_fee: Optional[float] = Field(None, ge=0.0)

    model_config = ConfigDict(frozen=True)

    @property
    def normalized_type(self) -> str:
        return self.type.strip().lower()
