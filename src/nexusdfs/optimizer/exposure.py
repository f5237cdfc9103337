"""Batch exposure tracking used to bias generators toward configured bands."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Optional, Tuple

from nexusdfs.models import ExposureBand, ExposureSettings, Lineup, PlayerRecord


_IN_BAND_REWARD = 20.0
_UNDER_PENALTY = 50.0
_OVER_PENALTY = 100.0
_STACK_REWARD = 10.0
_OVER_WEIGHT = 0.1
_UNDER_WEIGHT = 2.0


class ExposureTracker:
    """Counts player/team appearances over existing plus generated lineups.

    The tracker belongs to a single generator run; it is never shared across
    threads.
    """

    def __init__(self, settings: Optional[ExposureSettings] = None, existing: Iterable[Lineup] = ()):
        self.settings = settings or ExposureSettings()
        self.players: Counter = Counter()
        self.teams: Counter = Counter()
        self.total = 0
        for lineup in existing:
            self.record(lineup)

    @property
    def has_constraints(self) -> bool:
        return any(entry.is_active for entry in self.settings.players) or any(
            entry.is_active or entry.stack_size is not None for entry in self.settings.teams
        )

    def record(self, lineup: Lineup) -> None:
        self.total += 1
        self.players.update(lineup.player_ids)
        self.teams.update({player.team for player in lineup.players})

    def player_pct(self, player_id: str) -> float:
        if self.total == 0:
            return 0.0
        return self.players[player_id] / self.total * 100.0

    def team_pct(self, team: str) -> float:
        if self.total == 0:
            return 0.0
        return self.teams[team] / self.total * 100.0

    def band_status(self, player_id: str) -> int:
        """-1 under the band minimum, 1 over the maximum, 0 otherwise."""

        band = self.settings.player_band(player_id)
        if band is None or self.total == 0:
            return 0
        pct = self.player_pct(player_id)
        if pct > band.max:
            return 1
        if pct < band.min:
            return -1
        return 0

    def weight(self, player: PlayerRecord, captain: bool = False) -> float:
        """Sampling weight factor nudging players back inside their band."""

        status = self.band_status(player.player_id)
        if status > 0:
            return _OVER_WEIGHT
        if status < 0:
            return _UNDER_WEIGHT
        band = self.settings.player_band(player.player_id)
        if band is not None and band.max <= 0.0:
            return 0.0
        return 1.0

    def out_of_band(self, lineup: Lineup) -> List[Tuple[PlayerRecord, bool]]:
        """Players of ``lineup`` currently above their band, with captain flag."""

        result = []
        for index, player in enumerate((lineup.captain, *lineup.flex)):
            if self.band_status(player.player_id) > 0:
                result.append((player, index == 0))
        return result

    def accepts(self, player: PlayerRecord) -> bool:
        """True when adding ``player`` keeps them at or under their band maximum."""

        band = self.settings.player_band(player.player_id)
        if band is None:
            return True
        return self._projected(self.players[player.player_id]) <= band.max

    def _projected(self, count: int) -> float:
        return (count + 1) / (self.total + 1) * 100.0

    @staticmethod
    def _band_score(projected: float, band: ExposureBand) -> float:
        if projected < band.min:
            return -(band.min - projected) / 100.0 * _UNDER_PENALTY
        if projected > band.max:
            return -(projected - band.max) / 100.0 * _OVER_PENALTY
        return _IN_BAND_REWARD

    def constraint_score(self, lineup: Lineup) -> float:
        """Soft score of how well adding ``lineup`` keeps the batch inside bands."""

        score = 0.0
        for player in lineup.players:
            band = self.settings.player_band(player.player_id)
            if band is None or not band.is_active:
                continue
            score += self._band_score(self._projected(self.players[player.player_id]), band)

        counts = lineup.team_counts
        for entry in self.settings.teams:
            present = counts.get(entry.team, 0)
            if entry.is_active and present:
                score += self._band_score(self._projected(self.teams[entry.team]), entry)
            if entry.stack_size is not None and present >= entry.stack_size:
                score += _STACK_REWARD
        return score
