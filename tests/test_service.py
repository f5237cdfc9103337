import pytest

from nexusdfs.config import OptimizerSettings
from nexusdfs.errors import NotInitialized, OptimizationCancelled, UnknownStrategy, ValidationFailure
from nexusdfs.learning import PerformanceTracker
from nexusdfs.optimizer import NexusOptimizer
from nexusdfs.persistence import MemoryStorage, SessionStore
from nexusdfs.validation import validate_lineup

from tests.factories import make_lineup, raw_pool, sample_pool


_SMALL = {
    "stochastic": {"iterations": 300},
    "evolutionary": {"population_size": 10, "generations": 3},
    "annealing": {"max_iterations": 40, "max_runs": 1, "neighborhood_size": 3},
}


def _optimizer(**kwargs) -> NexusOptimizer:
    settings = OptimizerSettings(parallel=False, max_workers=1, learning_enabled=True, adapt_distribution=True)
    kwargs.setdefault("tracker", PerformanceTracker(MemoryStorage()))
    return NexusOptimizer(settings=settings, seed=11, **kwargs)


def test_initialize_reports_recommendation():
    optimizer = _optimizer()
    statuses = []
    optimizer.on_status(statuses.append)

    payload = optimizer.initialize(raw_pool(), contest={"type": "cash", "field_size": 100})

    assert payload["recommended_strategy"] == "cash_game"
    assert payload["complexity_score"] == pytest.approx(1.0)
    assert "portfolio" in payload["available_presets"]
    assert payload["validation"]["is_valid"] is True
    assert optimizer.current_run.run_id == payload["run_id"]
    assert statuses[0].startswith("Data validated: 18 players")


def test_invalid_pool_is_rejected():
    optimizer = _optimizer()
    with pytest.raises(ValidationFailure) as excinfo:
        optimizer.initialize([])
    assert excinfo.value.errors
    assert optimizer.current_run is None


def test_invalid_team_stack_is_rejected():
    optimizer = _optimizer()
    with pytest.raises(ValidationFailure):
        optimizer.initialize(sample_pool(), team_stacks=[{"team": "DRX", "stack_plus": 1.0}])


def test_optimize_requires_initialize():
    with pytest.raises(NotInitialized):
        _optimizer().optimize(3)


def test_unknown_strategy():
    optimizer = _optimizer()
    optimizer.initialize(sample_pool())
    with pytest.raises(UnknownStrategy):
        optimizer.optimize(3, strategy="moonshot")


def test_single_algorithm_strategy():
    optimizer = _optimizer()
    optimizer.initialize(sample_pool(), contest={"type": "cash"})

    outcome = optimizer.optimize(3, custom_config=_SMALL)
    optimizer.close()

    assert outcome.strategy_used == "cash_game"
    assert 1 <= len(outcome.lineups) <= 3
    for item in outcome.lineups:
        assert validate_lineup(item.lineup) == []
        assert item.source_algorithm == "stochastic"
    assert outcome.summary["strategy"] == "cash_game"
    history = optimizer.tracker.history()
    assert len(history) == 1
    assert history[0].algorithm == "stochastic"
    assert history[0].strategy == "cash_game"
    assert optimizer.current_run.status == "completed"


def test_existing_lineups_are_not_repeated():
    pool = sample_pool()
    existing = make_lineup(pool, "t1-mid", ["gen-top", "hle-jng", "hle-mid", "gen-adc", "t1-sup"])
    optimizer = _optimizer()
    optimizer.initialize(pool, existing_lineups=[existing])

    outcome = optimizer.optimize(4, strategy="cash_game", custom_config=_SMALL)

    assert existing.signature not in {item.signature for item in outcome.lineups}


def test_hybrid_strategy_with_custom_distribution():
    optimizer = _optimizer()
    optimizer.initialize(sample_pool())

    outcome = optimizer.optimize(
        4,
        strategy="balanced",
        custom_config={**_SMALL, "distribution": {"stochastic": 0.5, "evolutionary": 0.5}},
    )

    assert outcome.lineups
    assert {item.source_algorithm for item in outcome.lineups} <= {"stochastic", "evolutionary"}
    assert outcome.summary["allocations"] == {"stochastic": 2, "evolutionary": 2}
    assert len({item.signature for item in outcome.lineups}) == len(outcome.lineups)


def test_portfolio_strategy_tags_lineups():
    optimizer = _optimizer()
    optimizer.initialize(sample_pool(), contest={"type": "gpp", "field_size": 5000})

    outcome = optimizer.optimize(3, strategy="portfolio", custom_config={**_SMALL, "portfolio": {"bulk_multiplier": 3}})
    optimizer.close()

    assert outcome.strategy_used == "portfolio"
    assert 1 <= len(outcome.lineups) <= 3
    assert all(item.barbell_category is not None for item in outcome.lineups)
    assert all(item.stack_type is not None for item in outcome.lineups)
    assert optimizer.tracker.history()[0].algorithm == "portfolio"


def test_cancel_during_generation():
    optimizer = _optimizer()
    optimizer.initialize(sample_pool())
    optimizer.on_progress(lambda percent, stage: optimizer.cancel())

    with pytest.raises(OptimizationCancelled):
        optimizer.optimize(3, strategy="cash_game", custom_config=_SMALL)

    assert optimizer.current_run.status == "cancelled"
    assert optimizer.stats()["cancelled"] == 1

    # A new batch clears the previous cancellation.
    optimizer.on_progress(None)
    assert optimizer.optimize(2, strategy="cash_game", custom_config=_SMALL).lineups


def test_strategies_and_stats():
    optimizer = _optimizer()
    assert optimizer.stats()["status"] == "idle"

    optimizer.initialize(sample_pool(), contest={"type": "tournament"})
    optimizer.optimize(2, strategy="cash_game", custom_config=_SMALL)
    optimizer.close()

    strategies = optimizer.get_strategies()
    assert strategies["recommended"]["resolves_to"] == "tournament"
    assert strategies["cash_game"]["performance"]["usage"] == 1

    stats = optimizer.stats()
    assert stats["runs"] == 1
    assert stats["batches"] == 1
    assert stats["lineups_generated"] >= 1
    assert stats["history_size"] == 1
    assert stats["status"] == "completed"


def test_sessions_keep_each_run():
    sessions = SessionStore()
    optimizer = _optimizer(sessions=sessions)

    first = optimizer.initialize(sample_pool())["run_id"]
    second = optimizer.initialize(sample_pool())["run_id"]

    assert first != second
    assert sessions.run_ids() == [first, second]
    assert sessions.get(second) is optimizer.current_run
