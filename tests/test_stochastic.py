import itertools
import random

import pytest

from nexusdfs.errors import NotInitialized, OptimizationCancelled, ValidationFailure
from nexusdfs.models import ExposureSettings
from nexusdfs.optimizer import StochasticGenerator
from nexusdfs.optimizer.pool import PlayerPool, weighted_pick
from nexusdfs.progress import CallbackProgress, CancellationToken
from nexusdfs.scoring import score_lineup
from nexusdfs.validation import validate_lineup

from tests.factories import make_lineup, sample_pool


_CONFIG = {"iterations": 200, "batch_size": 50}


def _generator(**overrides) -> StochasticGenerator:
    generator = StochasticGenerator({**_CONFIG, **overrides}, seed=7)
    generator.initialize(sample_pool())
    return generator


def test_weighted_pick_greedy_breaks_ties_by_id():
    pool = sample_pool()
    candidates = [pool[1], pool[0]]
    assert weighted_pick(random.Random(1), candidates, [5.0, 5.0], 0.0).player_id == "t1-jng"
    assert weighted_pick(random.Random(1), candidates, [5.0, 6.0], 0.0).player_id == "t1-top"
    assert weighted_pick(random.Random(1), [], [], 0.5) is None


def test_weighted_pick_greedy_applies_factors():
    pool = sample_pool()
    candidates = [pool[2], pool[8]]
    rng = random.Random(1)

    assert weighted_pick(rng, candidates, [9.0, 5.0], 0.0).player_id == "t1-mid"
    assert weighted_pick(rng, candidates, [9.0, 5.0], 0.0, factors=[0.0, 1.0]).player_id == "gen-mid"
    assert weighted_pick(rng, candidates, [9.0, 5.0], 0.0, factors=[0.5, 1.0]).player_id == "gen-mid"


def test_greedy_run_honours_zero_max_exposure():
    generator = StochasticGenerator({**_CONFIG, "randomness": 0.0}, seed=11)
    exposure = ExposureSettings.model_validate({"players": [{"player_id": "t1-mid", "max": 0}]})
    generator.initialize(sample_pool(), exposure=exposure)

    result = generator.run(3)

    assert result.lineups
    assert all("t1-mid" not in item.lineup.player_ids for item in result.lineups)


def test_build_lineup_respects_cap_and_team_limit():
    pool = PlayerPool(sample_pool())
    rng = random.Random(3)
    built = [pool.build_lineup(rng, randomness=0.8) for _ in range(50)]
    lineups = [lineup for lineup in built if lineup is not None]

    assert lineups
    for lineup in lineups:
        assert validate_lineup(lineup) == []


def test_repair_replaces_duplicates():
    players = sample_pool()
    pool = PlayerPool(players)
    broken = make_lineup(players, "t1-top", ["t1-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"])

    repaired = pool.repair(broken)

    assert repaired is not None
    assert repaired.flex_at("TOP").player_id != "t1-top"
    assert validate_lineup(repaired) == []


def test_run_before_initialize_raises():
    generator = StochasticGenerator(_CONFIG)
    with pytest.raises(NotInitialized):
        generator.run(3)


def test_initialize_rejects_invalid_pool():
    generator = StochasticGenerator(_CONFIG)
    with pytest.raises(ValidationFailure) as excinfo:
        generator.initialize([])
    assert "non-empty" in str(excinfo.value)
    assert generator.is_initialized is False


def test_generates_unique_valid_lineups_sorted_by_score():
    result = _generator().run(5)

    assert len(result.lineups) == 5
    signatures = {item.signature for item in result.lineups}
    assert len(signatures) == 5
    scores = [item.nexus_score for item in result.lineups]
    assert scores == sorted(scores, reverse=True)
    for item in result.lineups:
        assert validate_lineup(item.lineup) == []
        assert item.source_algorithm == "stochastic"
    assert result.summary["lineup_count"] == 5
    assert result.summary["trials"] == 200


def test_seeded_runs_are_reproducible():
    first = _generator().run(4)
    second = _generator().run(4)
    assert [item.signature for item in first.lineups] == [item.signature for item in second.lineups]


def test_zero_randomness_is_greedy():
    result = _generator(randomness=0.0).run(3)

    assert len(result.lineups) == 1
    assert result.summary["unique_candidates"] == 1


def test_duplicate_signature_keeps_best_variant(monkeypatch):
    pool = sample_pool()
    weaker_first = make_lineup(pool, "hle-mid", ["gen-top", "hle-jng", "t1-mid", "gen-adc", "t1-sup"])
    stronger_later = make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"])
    assert weaker_first.signature == stronger_later.signature
    expected = max(score_lineup(weaker_first).total, score_lineup(stronger_later).total)

    generator = _generator(iterations=10, batch_size=5)
    variants = itertools.cycle([weaker_first, stronger_later])
    monkeypatch.setattr(generator.pool, "build_lineup", lambda rng, **kwargs: next(variants))

    result = generator.run(1)

    assert result.summary["unique_candidates"] == 1
    assert result.lineups[0].nexus_score == pytest.approx(expected)


def test_existing_lineups_are_not_repeated():
    best = _generator().run(1).lineups[0]

    generator = StochasticGenerator(_CONFIG, seed=7)
    generator.initialize(sample_pool(), existing_lineups=[best.lineup])
    result = generator.run(5)

    assert best.signature not in {item.signature for item in result.lineups}


def test_zero_max_exposure_excludes_player():
    generator = StochasticGenerator(_CONFIG, seed=11)
    exposure = ExposureSettings.model_validate({"players": [{"player_id": "t1-mid", "max": 0}]})
    generator.initialize(sample_pool(), exposure=exposure)

    result = generator.run(5)

    assert result.lineups
    assert all("t1-mid" not in item.lineup.player_ids for item in result.lineups)


def test_cancelled_token_stops_run():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OptimizationCancelled) as excinfo:
        _generator().run(3, token=token)
    assert excinfo.value.algorithm == "stochastic"


def test_progress_reaches_completion():
    seen = []
    sink = CallbackProgress(on_progress=lambda percent, stage: seen.append((percent, stage)))

    _generator().run(2, progress=sink)

    percents = [percent for percent, _ in seen]
    assert percents == sorted(percents)
    assert seen[-1] == (100.0, "stochastic_complete")
    assert ("stochastic_sampling" in {stage for _, stage in seen})
