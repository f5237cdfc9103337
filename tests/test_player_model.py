import pytest
from pydantic import ValidationError

from nexusdfs.models import Lineup, PlayerRecord

from tests.factories import make_lineup, sample_pool


def test_player_record_is_frozen():
    record = PlayerRecord(
        player_id="p1",
        name="Test Player",
        team="T1",
        position="MID",
        salary=9000,
        projection=20.5,
    )

    assert record.player_id == "p1"
    assert record.ownership_pct == 0.0

    with pytest.raises((TypeError, ValidationError)):
        record.player_id = "p2"  # type: ignore[attr-defined]


def test_player_record_rejects_unknown_position_and_negative_salary():
    with pytest.raises(ValidationError):
        PlayerRecord(player_id="p1", name="X", team="T1", position="CARRY", salary=5000, projection=10)
    with pytest.raises(ValidationError):
        PlayerRecord(player_id="p1", name="X", team="T1", position="MID", salary=-1, projection=10)


def test_points_per_dollar_uses_thousands():
    record = PlayerRecord(player_id="p1", name="X", team="T1", position="ADC", salary=8000, projection=20.0)
    assert record.points_per_dollar == pytest.approx(2.5)

    free = PlayerRecord(player_id="p2", name="Y", team="T1", position="ADC", salary=0, projection=20.0)
    assert free.points_per_dollar == 0.0


def test_captain_salary_rounds_half_up():
    captain = PlayerRecord(player_id="c", name="C", team="T1", position="MID", salary=4203, projection=10.0)
    lineup = Lineup(captain=captain, flex=())
    # 4203 * 1.5 = 6304.5
    assert lineup.captain_salary == 6305


def test_lineup_totals_include_team_slot():
    pool = sample_pool()
    lineup = make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"], team="gen")

    assert lineup.salary == 12_900 + 6200 + 5800 + 7200 + 7600 + 5200 + 3600
    assert lineup.projection == pytest.approx(24.0 * 1.5 + 17.0 + 15.0 + 19.5 + 21.0 + 14.0 + 7.0)
    assert lineup.team_counts == {"T1": 2, "GEN": 3, "HLE": 2}
    assert lineup.flex_at("ADC").player_id == "gen-adc"


def test_signature_ignores_captain_assignment_and_team():
    pool = sample_pool()
    first = make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"], team="gen")
    second = make_lineup(pool, "hle-mid", ["gen-top", "hle-jng", "t1-mid", "gen-adc", "t1-sup"], team="t1")

    assert first.signature == second.signature
    assert first.player_ids != second.player_ids


def test_with_flex_returns_new_lineup():
    pool = sample_pool()
    lineup = make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"])
    replacement = next(player for player in pool if player.player_id == "hle-top")

    updated = lineup.with_flex("TOP", replacement)

    assert lineup.flex_at("TOP").player_id == "gen-top"
    assert updated.flex_at("TOP").player_id == "hle-top"
    assert [player.position for player in updated.flex] == ["TOP", "JNG", "MID", "ADC", "SUP"]
