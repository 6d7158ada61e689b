from __future__ import annotations

import pytest

from photo_prune.core.settings import (
    AnalysisSettings,
    initialize_settings,
    load_settings,
    save_settings,
)


def test_defaults_when_store_is_empty(store) -> None:
    settings = load_settings(store)
    assert settings == AnalysisSettings()
    assert settings.similarity_threshold == pytest.approx(0.90)
    assert settings.time_span_hours == 1
    assert settings.worker_count == 4
    assert settings.series_min_group_size == 20
    assert settings.series_min_density == 3
    assert settings.series_max_time_gap == 5


def test_invalid_values_fall_back_to_defaults(store) -> None:
    store.set_setting("similarityThreshold", 1.5)
    store.set_setting("resultsSort", "random")
    store.set_setting("timeSpanHours", "0")
    store.set_setting("seriesMinDensity", "4.5")
    settings = load_settings(store)
    assert settings.similarity_threshold == pytest.approx(0.90)
    assert settings.results_sort == "group-size"
    assert settings.time_span_hours == 0
    assert settings.series_min_density == pytest.approx(4.5)


def test_initialize_persists_missing_defaults(store) -> None:
    store.set_setting("workerCount", 2)
    store.set_setting("minGroupSize", 99)
    initialize_settings(store)
    assert store.get_setting("workerCount") == 2
    assert store.get_setting("minGroupSize") == 2
    assert store.get_setting("similarityThreshold") == pytest.approx(0.90)


def test_save_settings(store) -> None:
    save_settings(store, AnalysisSettings(similarity_threshold=0.95, results_sort="date-asc"))
    loaded = load_settings(store)
    assert loaded.similarity_threshold == pytest.approx(0.95)
    assert loaded.results_sort == "date-asc"
