"""Player pool validation that gates every generator."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from statistics import median
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from nexusdfs.config.roster import DEFAULT_RULES, RosterRules
from nexusdfs.models import Lineup, PlayerRecord, TeamStack


logger = logging.getLogger(__name__)

RawPlayer = Union[PlayerRecord, Mapping[str, Any]]

# Accept the camelCase keys produced by upstream CSV/JSON collaborators.
_FIELD_ALIASES = {
    "id": "player_id",
    "playerId": "player_id",
    "projectedPoints": "projection",
    "projected_points": "projection",
    "ownershipPct": "ownership",
}

_LOW_AVG_OWNERSHIP = 5.0
_HIGH_AVG_OWNERSHIP = 25.0
_VALUE_TOLERANCE = 0.1
_STACK_PLUS_RANGE = (-10.0, 10.0)


@dataclass
class ValidationReport:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)
    players: List[PlayerRecord] = field(default_factory=list)

    def summary_line(self) -> str:
        if not self.is_valid:
            return f"Validation failed: {len(self.errors)} error(s) found"
        suffix = f" ({len(self.warnings)} warnings)" if self.warnings else ""
        return (
            f"Data validated: {self.stats.get('player_count', 0)} players "
            f"from {self.stats.get('team_count', 0)} teams{suffix}"
        )

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "stats": dict(self.stats),
        }


def _label(index: int, raw: RawPlayer) -> str:
    name = raw.name if isinstance(raw, PlayerRecord) else raw.get("name") if isinstance(raw, Mapping) else None
    return str(name) if isinstance(name, str) and name.strip() else str(index)


def _coerce_record(index: int, raw: RawPlayer, errors: List[str]) -> Optional[PlayerRecord]:
    if isinstance(raw, PlayerRecord):
        return raw
    if not isinstance(raw, Mapping):
        errors.append(f"Player {index}: record must be a mapping, got {type(raw).__name__}")
        return None

    data = {_FIELD_ALIASES.get(key, key): value for key, value in raw.items()}
    for key in ("name", "team", "position"):
        if isinstance(data.get(key), str):
            data[key] = data[key].strip()
    if isinstance(data.get("position"), str):
        data["position"] = data["position"].upper()

    try:
        return PlayerRecord.model_validate(data)
    except ValidationError as exc:
        label = _label(index, raw)
        for issue in exc.errors():
            field_name = ".".join(str(part) for part in issue["loc"]) or "record"
            if issue["type"] == "missing":
                errors.append(f"Player {label}: Missing {field_name}")
            else:
                errors.append(f"Player {label}: Invalid {field_name} ({issue['msg']})")
        return None


def minimum_lineup_salary(players: Sequence[PlayerRecord], rules: RosterRules = DEFAULT_RULES) -> int:
    """Cheapest possible lineup cost under the roster's slot structure.

    Cheapest player per required position, plus the cheapest captain at the
    captain multiplier, plus the cheapest TEAM player when the format has a
    TEAM slot and the pool offers one. Missing positions are priced at the
    maximum sane salary so an incomplete pool never looks feasible.
    """

    cheapest: Dict[str, int] = {}
    for player in players:
        current = cheapest.get(player.position)
        if current is None or player.salary < current:
            cheapest[player.position] = player.salary

    total = 0
    for position in rules.required_positions:
        total += cheapest.get(position, rules.max_player_salary)

    captain_candidates = [cheapest[pos] for pos in rules.required_positions if pos in cheapest]
    if captain_candidates:
        total += rules.captain_salary(min(captain_candidates))
    else:
        total += rules.captain_salary(rules.max_player_salary)

    if rules.team_slot and "TEAM" in cheapest:
        total += cheapest["TEAM"]
    return total


def _check_positions(players: Sequence[PlayerRecord], rules: RosterRules, report: ValidationReport) -> None:
    counts = Counter(player.position for player in players)
    for position in rules.required_positions:
        count = counts.get(position, 0)
        if count == 0:
            report.errors.append(f"No players found for required position: {position}")
        elif count < 2:
            report.warnings.append(f"Only {count} player(s) for position {position} - limited lineup diversity")
    report.stats["position_breakdown"] = dict(counts)


def _check_teams(players: Sequence[PlayerRecord], rules: RosterRules, report: ValidationReport) -> None:
    counts = Counter(player.team for player in players)
    report.stats["team_count"] = len(counts)
    if len(counts) < rules.min_teams:
        report.errors.append(f"Need at least {rules.min_teams} teams, found {len(counts)}")

    required = len(rules.required_positions)
    for team, count in sorted(counts.items()):
        # +1 leaves room for the TEAM entry itself.
        if count > rules.team_max_players + 1:
            report.warnings.append(f"Team {team} has {count} players - may cause stacking limitations")
        if count < required:
            report.warnings.append(f"Team {team} has only {count} players - incomplete position coverage")


def _check_salaries(players: Sequence[PlayerRecord], rules: RosterRules, report: ValidationReport) -> None:
    for player in players:
        if player.position == "TEAM":
            continue
        if player.salary < rules.min_player_salary:
            report.warnings.append(f"Player {player.name}: Unusually low salary (${player.salary:,})")
        if player.salary > rules.max_player_salary:
            report.warnings.append(f"Player {player.name}: Unusually high salary (${player.salary:,})")

    min_salary = minimum_lineup_salary(players, rules)
    report.stats["minimum_lineup_salary"] = min_salary
    if min_salary > rules.salary_cap:
        report.errors.append(
            "Impossible to create valid lineup - "
            f"minimum salary ({min_salary:,}) exceeds cap ({rules.salary_cap:,})"
        )


def _check_projections(players: Sequence[PlayerRecord], rules: RosterRules, report: ValidationReport) -> None:
    projections = sorted(player.projection for player in players)
    for player in players:
        if player.projection > rules.max_projection:
            report.warnings.append(f"Player {player.name}: Unusually high projection ({player.projection})")
    if projections:
        report.stats["projection_stats"] = {
            "min": projections[0],
            "max": projections[-1],
            "median": median(projections),
            "average": sum(projections) / len(projections),
        }


def _check_ownership(players: Sequence[PlayerRecord], report: ValidationReport) -> None:
    values: List[float] = []
    for player in players:
        if player.ownership is None:
            report.warnings.append(f"Player {player.name}: Missing ownership data")
            continue
        if player.ownership < 0:
            report.warnings.append(f"Player {player.name}: Negative ownership ({player.ownership}%)")
        elif player.ownership > 100:
            report.warnings.append(f"Player {player.name}: Ownership over 100% ({player.ownership}%)")
        values.append(player.ownership)

    if not values:
        return
    total = sum(values)
    average = total / len(values)
    report.stats["ownership_stats"] = {
        "min": min(values),
        "max": max(values),
        "average": average,
        "total": total,
    }
    if average < _LOW_AVG_OWNERSHIP:
        report.warnings.append("Very low average ownership - may indicate stale data")
    if average > _HIGH_AVG_OWNERSHIP:
        report.warnings.append("Very high average ownership - may indicate chalk-heavy slate")


def _check_consistency(players: Sequence[PlayerRecord], report: ValidationReport) -> None:
    for player in players:
        if player.value is None or player.salary <= 0:
            continue
        computed = player.points_per_dollar
        if abs(computed - player.value) > _VALUE_TOLERANCE:
            report.warnings.append(
                f"Player {player.name}: Value calculation mismatch "
                f"(calculated: {computed:.2f}, provided: {player.value})"
            )

    seen: Dict[str, int] = {}
    for index, player in enumerate(players):
        if player.name in seen:
            report.warnings.append(
                f"Duplicate player name found: {player.name} (indices {seen[player.name]}, {index})"
            )
        else:
            seen[player.name] = index

    ids = Counter(player.player_id for player in players)
    for player_id, count in sorted(ids.items()):
        if count > 1:
            report.errors.append(f"Duplicate player id {player_id!r} appears {count} times")


def validate_player_pool(
    records: Optional[Iterable[RawPlayer]],
    rules: RosterRules = DEFAULT_RULES,
) -> ValidationReport:
    """Validate raw player records and return the parsed pool with diagnostics."""

    report = ValidationReport(is_valid=False)
    raw = list(records) if records is not None and not isinstance(records, (str, bytes, Mapping)) else []
    if not raw:
        report.errors.append("Player pool must be a non-empty collection of player records")
        report.stats["player_count"] = 0
        return report

    players: List[PlayerRecord] = []
    for index, entry in enumerate(raw):
        record = _coerce_record(index, entry, report.errors)
        if record is not None:
            players.append(record)

    report.players = players
    report.stats["player_count"] = len(players)
    if not players:
        return report

    _check_positions(players, rules, report)
    _check_teams(players, rules, report)
    _check_salaries(players, rules, report)
    _check_projections(players, rules, report)
    _check_ownership(players, report)
    _check_consistency(players, report)

    report.is_valid = not report.errors
    logger.info(
        "Validated player pool: %s players, %s errors, %s warnings",
        len(players),
        len(report.errors),
        len(report.warnings),
    )
    return report


def validate_team_stacks(
    stacks: Optional[Iterable[Union[TeamStack, Mapping[str, Any]]]],
    players: Sequence[PlayerRecord],
    rules: RosterRules = DEFAULT_RULES,
) -> ValidationReport:
    report = ValidationReport(is_valid=False)
    entries = list(stacks or [])
    if not entries:
        report.warnings.append("No team stacks provided - optimizer will create default stacks")

    teams = {player.team for player in players}
    allowed = set(rules.required_positions) | {"TEAM"}
    covered: List[str] = []
    for index, entry in enumerate(entries):
        try:
            stack = entry if isinstance(entry, TeamStack) else TeamStack.model_validate(entry)
        except ValidationError as exc:
            report.errors.append(f"Stack {index}: {exc.errors()[0]['msg']}")
            continue
        if stack.team not in teams:
            report.errors.append(f"Stack {index}: Team '{stack.team}' not found in player pool")
            continue
        invalid = [pos for pos in stack.positions if pos not in allowed]
        if invalid:
            report.errors.append(f"Stack {index}: Invalid positions [{', '.join(invalid)}]")
        low, high = _STACK_PLUS_RANGE
        if not low <= stack.stack_plus <= high:
            report.warnings.append(f"Stack {index}: Unusual Stack+ value ({stack.stack_plus})")
        covered.append(stack.team)

    report.stats["stack_count"] = len(entries)
    report.stats["teams_with_stacks"] = sorted(set(covered))
    report.is_valid = not report.errors
    return report


def validate_lineup(lineup: Optional[Lineup], rules: RosterRules = DEFAULT_RULES) -> List[str]:
    """Return the list of rule violations for a lineup; empty means valid."""

    if lineup is None:
        return ["Lineup is missing"]

    errors: List[str] = []
    if lineup.captain.position not in rules.required_positions:
        errors.append(f"Captain must come from a required position, got {lineup.captain.position}")

    counts = Counter(player.position for player in lineup.flex)
    for position in rules.required_positions:
        if counts.get(position, 0) != 1:
            errors.append(f"Must have exactly 1 {position} player, found {counts.get(position, 0)}")
    extra = set(counts) - set(rules.required_positions)
    if extra:
        errors.append(f"Unexpected flex positions: {', '.join(sorted(extra))}")

    if lineup.team is not None:
        if not rules.team_slot:
            errors.append("Roster format has no TEAM slot")
        elif lineup.team.position != "TEAM":
            errors.append(f"TEAM slot holds a {lineup.team.position} player")

    ids = [player.player_id for player in lineup.players]
    if len(ids) != len(set(ids)):
        errors.append("Lineup contains duplicate players")

    if lineup.salary > rules.salary_cap:
        errors.append(f"Lineup salary {lineup.salary:,} exceeds cap {rules.salary_cap:,}")

    core = Counter(player.team for player in (lineup.captain, *lineup.flex))
    for team, count in sorted(core.items()):
        if count > rules.team_max_players:
            errors.append(f"Team {team} has {count} players; limit is {rules.team_max_players}")
    return errors
