from __future__ import annotations

import pytest

from photo_prune.analysis import find_photo_series
from photo_prune.core.models import SeriesOptions

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS


def _burst_then_isolated(make_photo):
    burst = [make_photo(f"burst-{i}", i * 2000) for i in range(25)]
    last = burst[-1].photo_taken_ts
    isolated = [make_photo(f"solo-{i}", last + 2 * HOUR_MS + i * HOUR_MS) for i in range(3)]
    return burst + isolated


def test_burst_detected_with_default_settings(make_photo) -> None:
    series = find_photo_series(_burst_then_isolated(make_photo))
    assert len(series) == 1
    group = series[0]
    assert group.photo_count == 25
    assert [p.file_id for p in group.photos] == [f"burst-{i}" for i in range(25)]
    assert group.start_time == 0
    assert group.end_time == 48_000
    assert group.avg_time_between_photos == pytest.approx(2.0)
    assert group.density >= 3


def test_input_order_does_not_matter(make_photo) -> None:
    photos = list(reversed(_burst_then_isolated(make_photo)))
    assert [g.photo_count for g in find_photo_series(photos)] == [25]


def test_sparse_run_fails_density(make_photo) -> None:
    # 20 photos four minutes apart stay under the max gap but average 0.26/min.
    photos = [make_photo(f"p{i}", i * 4 * MINUTE_MS) for i in range(20)]
    assert find_photo_series(photos) == []
    relaxed = SeriesOptions(min_group_size=20, min_density=0.2, max_time_gap_minutes=5)
    assert len(find_photo_series(photos, relaxed)) == 1


def test_small_runs_are_ignored(make_photo) -> None:
    photos = [make_photo(f"p{i}", i * 1000) for i in range(10)]
    assert find_photo_series(photos) == []
    assert len(find_photo_series(photos, SeriesOptions(min_group_size=5))) == 1


def test_series_sorting_and_progress(make_photo) -> None:
    early = [make_photo(f"e{i}", i * 1000) for i in range(6)]
    late = [make_photo(f"l{i}", 5 * HOUR_MS + i * 1000) for i in range(8)]
    progress: list[float] = []
    options = SeriesOptions(min_group_size=5)

    by_size = find_photo_series(early + late, options, progress.append)
    assert [g.photo_count for g in by_size] == [8, 6]
    assert progress == [50.0, 100.0]

    by_date = find_photo_series(early + late, options, sort_method="date-asc")
    assert [g.photo_count for g in by_date] == [6, 8]
    newest = find_photo_series(early + late, options, sort_method="date-desc")
    assert newest[0].start_time == 5 * HOUR_MS
    by_density = find_photo_series(early + late, options, sort_method="density")
    assert by_density[0].density >= by_density[1].density


def test_empty_input(make_photo) -> None:
    assert find_photo_series([]) == []
