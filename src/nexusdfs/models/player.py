"""Canonical player models shared across validation and optimizer layers."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


Position = Literal["TOP", "JNG", "MID", "ADC", "SUP", "TEAM"]

POSITIONS: tuple[str, ...] = ("TOP", "JNG", "MID", "ADC", "SUP", "TEAM")


class PlayerRecord(BaseModel):
    """Normalized player payload used by optimizer pipelines.

    Ownership is kept unbounded here; the pool validator reports out of range
    values as warnings rather than rejecting the record.
    """

    player_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    team: str = Field(..., min_length=1)
    position: Position
    salary: int = Field(..., ge=0)
    projection: float = Field(..., ge=0.0)
    ownership: Optional[float] = None
    value: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def ownership_pct(self) -> float:
        return self.ownership if self.ownership is not None else 0.0

    @property
    def points_per_dollar(self) -> float:
        """Projected points per $1,000 of salary."""

        if self.salary <= 0:
            return 0.0
        return self.projection / (self.salary / 1000)


class TeamStack(BaseModel):
    """External stack definition with its Stack+ correlation rating."""

    team: str = Field(..., min_length=1)
    positions: List[str] = Field(default_factory=list)
    stack_plus: float = 0.0

    model_config = ConfigDict(frozen=True)
