import pytest

from nexusdfs.scoring import (
    diversity_score,
    leverage_factor,
    lineup_distance,
    lineup_roi,
    player_exposures,
    salary_efficiency_bonus,
    score_lineup,
    stack_bonus,
    team_exposures,
)

from tests.factories import make_lineup, sample_pool


def _lineups():
    pool = sample_pool()
    return [
        make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"], team="hle"),
        make_lineup(pool, "hle-mid", ["gen-top", "hle-jng", "t1-mid", "gen-adc", "t1-sup"], team="t1"),
        make_lineup(pool, "hle-adc", ["hle-top", "t1-jng", "gen-mid", "t1-adc", "gen-sup"], team="gen"),
    ]


def test_stack_bonus_rewards_three_or_more():
    assert stack_bonus({"T1": 2, "GEN": 2}) == 0.0
    assert stack_bonus({"T1": 3}) == pytest.approx(25.0)
    assert stack_bonus({"T1": 4, "GEN": 3}) == pytest.approx(2 ** 1.8 * 25 + 25.0)


def test_leverage_factor_is_clamped():
    assert leverage_factor(0.0) == 1.5
    assert leverage_factor(80.0) == pytest.approx(1.25)
    assert leverage_factor(100.0) == pytest.approx(1.0)
    assert leverage_factor(400.0) == pytest.approx(0.6)


def test_salary_efficiency_bands():
    assert salary_efficiency_bonus(0.96) == pytest.approx(2.0)
    assert salary_efficiency_bonus(0.92) == pytest.approx(2.0)
    assert salary_efficiency_bonus(0.80) == pytest.approx(-5.0)


def test_score_lineup_returns_components():
    lineup = _lineups()[0]

    score = score_lineup(lineup)
    parts = score.components

    assert parts["salary"] == 47_900
    assert parts["salary_usage"] == pytest.approx(0.958)
    assert parts["salary_efficiency_bonus"] == pytest.approx(1.6)
    # HLE holds jungle, mid and the TEAM slot.
    assert parts["stack_bonus"] == pytest.approx(25.0)
    assert parts["base_projection"] == pytest.approx(lineup.projection)
    assert score.total == pytest.approx(
        parts["base_projection"] * parts["leverage_factor"] + parts["stack_bonus"] + parts["salary_efficiency_bonus"]
    )


def test_score_is_pure():
    lineup = _lineups()[0]
    assert score_lineup(lineup) == score_lineup(lineup)


def test_roi_mapping():
    assert lineup_roi(100.0) == pytest.approx(150.0)
    assert lineup_roi(25.0) == pytest.approx(0.0)
    assert score_lineup(_lineups()[0]).roi == pytest.approx(lineup_roi(score_lineup(_lineups()[0]).total))


def test_distance_and_diversity():
    first, second, third = _lineups()

    assert lineup_distance(first, second) == 0.0
    assert lineup_distance(first, third) == pytest.approx(1.0)
    assert diversity_score([first]) == 0.0
    assert diversity_score([first, second, third]) == pytest.approx(2.0 / 3.0)
    assert diversity_score([first, second, third], sample=2) == 0.0


def test_exposure_tables():
    lineups = _lineups()

    players = player_exposures(lineups)
    teams = team_exposures(lineups)

    assert players["gen-top"] == pytest.approx(200.0 / 3.0)
    assert players["hle-top"] == pytest.approx(100.0 / 3.0)
    assert teams["T1"] == pytest.approx(100.0)
    assert player_exposures([]) == {}
