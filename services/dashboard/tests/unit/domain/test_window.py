import random
from datetime import date

from conftest import date_span, make_snapshot
from src.domain.window import WINDOW_CAPACITY, MetricsWindow


def _snaps(start: date, count: int, **fields):
    return [make_snapshot(d, **fields) for d in date_span(start, count)]


def test_seed_keeps_last_ten_dates_ascending():
    response = _snaps(date(2024, 1, 1), 12)
    random.Random(3).shuffle(response)

    window = MetricsWindow.empty().merge(response)

    assert window.initialized is True
    assert window.dates == date_span(date(2024, 1, 3), 10)


def test_steady_state_merge_evicts_oldest_and_first_seen_wins():
    window = MetricsWindow.empty().merge(_snaps(date(2024, 1, 3), 10))
    original_value = window.points[7].montant_total_bc
    assert window.points[7].calculation_date == date(2024, 1, 10)

    window = window.merge(
        [
            make_snapshot("2024-01-10", montantTotalBc=-1.0),
            make_snapshot("2024-01-13"),
        ]
    )

    assert window.dates == date_span(date(2024, 1, 4), 10)
    kept = next(p for p in window.points if p.calculation_date == date(2024, 1, 10))
    assert kept.montant_total_bc == original_value


def test_empty_response_is_a_no_op():
    cold = MetricsWindow.empty()
    assert cold.merge([]) == cold
    assert cold.merge([]).initialized is False

    warm = cold.merge(_snaps(date(2024, 1, 1), 3))
    assert warm.merge([]) == warm


def test_remerge_of_contained_response_is_idempotent():
    response = _snaps(date(2024, 1, 1), 4)
    once = MetricsWindow.empty().merge(response)
    twice = once.merge(response)
    assert twice == once
    assert twice.merge(response) == once


def test_seed_collapses_duplicate_dates_first_occurrence_wins():
    window = MetricsWindow.empty().merge(
        [
            make_snapshot("2024-01-02", montantTotalBc=1.0),
            make_snapshot("2024-01-01"),
            make_snapshot("2024-01-02", montantTotalBc=2.0),
        ]
    )
    assert window.dates == [date(2024, 1, 1), date(2024, 1, 2)]
    assert window.points[1].montant_total_bc == 1.0


def test_late_old_dates_never_displace_newer_points():
    window = MetricsWindow.empty().merge(_snaps(date(2024, 1, 3), 10))
    window = window.merge([make_snapshot("2023-12-25")])
    assert window.dates == date_span(date(2024, 1, 3), 10)


def test_reset_returns_cold_window_with_same_capacity():
    window = MetricsWindow.empty(capacity=3).merge(_snaps(date(2024, 1, 1), 5))
    assert len(window.points) == 3
    cold = window.reset()
    assert cold.points == ()
    assert cold.initialized is False
    assert cold.capacity == 3


def test_invariants_hold_over_random_fetch_sequences():
    rng = random.Random(20240101)
    base = date(2024, 1, 1)
    window = MetricsWindow.empty()
    for _ in range(200):
        size = rng.randint(0, 15)
        response = [
            make_snapshot(date_span(base, 40)[rng.randint(0, 39)], montantTotalBc=rng.random())
            for _ in range(size)
        ]
        window = window.merge(response)
        dates = window.dates
        assert len(dates) <= WINDOW_CAPACITY
        assert len(set(dates)) == len(dates)
        assert dates == sorted(dates)
        assert window.merge(response) == window
