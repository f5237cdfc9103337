import random

import pytest

from nexusdfs.errors import OptimizationCancelled
from nexusdfs.models import ExposureSettings
from nexusdfs.optimizer import EvolutionaryGenerator
from nexusdfs.optimizer.base import ScoredLineup
from nexusdfs.optimizer.evolutionary import combined_rank, keep_best, select_diverse, team_composition
from nexusdfs.progress import CancellationToken
from nexusdfs.scoring import score_lineup
from nexusdfs.validation import validate_lineup

from tests.factories import make_lineup, sample_pool


_CONFIG = {"population_size": 12, "generations": 5}


def _generator(**overrides) -> EvolutionaryGenerator:
    generator = EvolutionaryGenerator({**_CONFIG, **overrides}, seed=5)
    generator.initialize(sample_pool())
    return generator


def _scored(lineup, fitness=None) -> ScoredLineup:
    score = score_lineup(lineup)
    return ScoredLineup(lineup=lineup, score=score, fitness=score.total if fitness is None else fitness)


def test_evolution_returns_unique_valid_lineups():
    result = _generator().run(4)

    assert 1 <= len(result.lineups) <= 4
    assert len({item.signature for item in result.lineups}) == len(result.lineups)
    for item in result.lineups:
        assert validate_lineup(item.lineup) == []
        assert item.source_algorithm == "evolutionary"
        # Without exposure bands fitness is the NexusScore.
        assert item.fitness == pytest.approx(item.nexus_score)
    assert len(result.summary["fitness_history"]) == 5
    assert result.summary["evaluated_lineups"] >= len(result.lineups)


def test_exposure_bands_shift_fitness():
    generator = EvolutionaryGenerator(_CONFIG, seed=5)
    exposure = ExposureSettings.model_validate({"teams": [{"team": team, "min": 50} for team in ("T1", "GEN", "HLE")]})
    generator.initialize(sample_pool(), exposure=exposure)

    result = generator.run(3)

    # Every roster touches at least two teams, each inside its band.
    assert result.lineups
    assert all(item.fitness >= item.nexus_score + 40.0 - 1e-9 for item in result.lineups)


def test_crossover_and_mutation_keep_slot_positions():
    generator = _generator()
    pool = sample_pool()
    first = make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"], team="hle")
    second = make_lineup(pool, "gen-adc", ["t1-top", "t1-jng", "gen-mid", "hle-adc", "gen-sup"], team="t1")
    rng = random.Random(9)

    for _ in range(20):
        child = generator.crossover(rng, first, second)
        assert [player.position for player in child.flex] == ["TOP", "JNG", "MID", "ADC", "SUP"]
        assert child.captain.player_id in {"t1-mid", "gen-adc"}
        mutated = generator.mutate(rng, child)
        assert [player.position for player in mutated.flex] == ["TOP", "JNG", "MID", "ADC", "SUP"]


def test_select_diverse_penalises_repeated_compositions():
    pool = sample_pool()
    a = make_lineup(pool, "t1-mid", ["t1-top", "gen-jng", "gen-mid", "gen-adc", "hle-sup"])
    b = make_lineup(pool, "t1-adc", ["t1-top", "gen-jng", "gen-mid", "gen-adc", "hle-sup"])
    c = make_lineup(pool, "hle-mid", ["hle-top", "t1-jng", "t1-mid", "gen-adc", "gen-sup"])
    assert team_composition(a) == team_composition(b)

    candidates = [_scored(a, 100.0), _scored(b, 99.0), _scored(c, 60.0)]
    # Equalise the NexusScore part so only fitness and the penalty matter.
    candidates = [item.tagged(score=candidates[0].score) for item in candidates]

    picked = select_diverse(candidates, 2, diversity_weight=1.0)

    assert [item.lineup for item in picked] == [a, c]


def test_cancel_between_generations():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OptimizationCancelled):
        _generator().run(2, token=token)


def test_archive_keeps_best_variant_per_signature():
    pool = sample_pool()
    weaker = _scored(make_lineup(pool, "hle-mid", ["gen-top", "hle-jng", "t1-mid", "gen-adc", "t1-sup"]), fitness=10.0)
    stronger = _scored(make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"]), fitness=50.0)
    assert weaker.signature == stronger.signature

    archive = {}
    keep_best(archive, [weaker])
    keep_best(archive, [stronger])
    keep_best(archive, [weaker])

    assert list(archive.values()) == [stronger]
    assert combined_rank(stronger) > combined_rank(weaker)
