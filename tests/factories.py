"""Shared slate builders for the test suite."""

from __future__ import annotations

from typing import List, Optional

from nexusdfs.models import Lineup, PlayerRecord


# id, name, team, position, salary, projection, ownership
_SLATE = [
    ("t1-top", "Zeus", "T1", "TOP", 6600, 18.5, 22.0),
    ("t1-jng", "Oner", "T1", "JNG", 7000, 19.0, 18.0),
    ("t1-mid", "Faker", "T1", "MID", 8600, 24.0, 35.0),
    ("t1-adc", "Gumayusi", "T1", "ADC", 8200, 23.5, 30.0),
    ("t1-sup", "Keria", "T1", "SUP", 5200, 14.0, 20.0),
    ("t1", "T1", "T1", "TEAM", 4000, 8.0, 18.0),
    ("gen-top", "Kiin", "GEN", "TOP", 6200, 17.0, 12.0),
    ("gen-jng", "Canyon", "GEN", "JNG", 6800, 18.0, 10.0),
    ("gen-mid", "Chovy", "GEN", "MID", 8400, 23.0, 25.0),
    ("gen-adc", "Peyz", "GEN", "ADC", 7600, 21.0, 15.0),
    ("gen-sup", "Lehends", "GEN", "SUP", 4600, 12.5, 8.0),
    ("gen", "Gen.G", "GEN", "TEAM", 3600, 7.0, 12.0),
    ("hle-top", "Doran", "HLE", "TOP", 5400, 14.5, 6.0),
    ("hle-jng", "Peanut", "HLE", "JNG", 5800, 15.0, 7.0),
    ("hle-mid", "Zeka", "HLE", "MID", 7200, 19.5, 9.0),
    ("hle-adc", "Viper", "HLE", "ADC", 7000, 19.0, 11.0),
    ("hle-sup", "Delight", "HLE", "SUP", 4200, 11.0, 5.0),
    ("hle", "Hanwha Life", "HLE", "TEAM", 3000, 6.5, 7.0),
]


def sample_pool() -> List[PlayerRecord]:
    return [
        PlayerRecord(
            player_id=player_id,
            name=name,
            team=team,
            position=position,
            salary=salary,
            projection=projection,
            ownership=ownership,
        )
        for player_id, name, team, position, salary, projection, ownership in _SLATE
    ]


def raw_pool() -> List[dict]:
    """The sample slate as upstream-style camelCase mappings."""

    return [
        {
            "id": player_id,
            "name": name,
            "team": team,
            "position": position.lower(),
            "salary": salary,
            "projectedPoints": projection,
            "ownership": ownership,
        }
        for player_id, name, team, position, salary, projection, ownership in _SLATE
    ]


def by_id(pool: List[PlayerRecord]) -> dict:
    return {player.player_id: player for player in pool}


def make_lineup(
    pool: List[PlayerRecord],
    captain: str,
    flex: List[str],
    team: Optional[str] = "hle",
) -> Lineup:
    players = by_id(pool)
    return Lineup(
        captain=players[captain],
        flex=tuple(players[player_id] for player_id in flex),
        team=players[team] if team else None,
    )
