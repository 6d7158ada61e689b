from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

SortMethod = Literal["group-size", "date-desc", "date-asc"]


class SettingsBackend(Protocol):
    def get_setting(self, key: str) -> Any: ...

    def set_setting(self, key: str, value: Any) -> None: ...


class AnalysisSettings(BaseModel):
    """User-tunable analysis knobs, persisted in the store's settings table."""

    similarity_threshold: float = Field(0.90, ge=0.5, le=0.99)
    # 0 disables temporal sessions and compares every photo with every other.
    time_span_hours: float = Field(1.0, ge=0, le=24)
    min_group_size: int = Field(2, ge=2, le=20)
    results_sort: SortMethod = "group-size"
    worker_count: int = Field(4, ge=1, le=8)
    series_min_group_size: int = Field(20, ge=5, le=100)
    series_min_density: float = Field(3.0, ge=0.5, le=10)
    series_max_time_gap: float = Field(5.0, ge=1, le=60)


SETTING_KEYS: dict[str, str] = {
    "similarity_threshold": "similarityThreshold",
    "time_span_hours": "timeSpanHours",
    "min_group_size": "minGroupSize",
    "results_sort": "resultsSort",
    "worker_count": "workerCount",
    "series_min_group_size": "seriesMinGroupSize",
    "series_min_density": "seriesMinDensity",
    "series_max_time_gap": "seriesMaxTimeGap",
}


def _validated(field: str, value: Any) -> Any:
    """Return ``value`` coerced for ``field`` or None when it is out of range."""
    try:
        return getattr(AnalysisSettings(**{field: value}), field)
    except ValidationError:
        return None


def load_settings(store: SettingsBackend) -> AnalysisSettings:
    """Read all analysis settings, replacing missing or invalid values with defaults."""
    values: dict[str, Any] = {}
    for field, key in SETTING_KEYS.items():
        raw = store.get_setting(key)
        if raw is None:
            continue
        value = _validated(field, raw)
        if value is None:
            logger.warning("Settings: ignoring invalid %s=%r", key, raw)
            continue
        values[field] = value
    return AnalysisSettings(**values)


def save_settings(store: SettingsBackend, settings: AnalysisSettings) -> None:
    for field, key in SETTING_KEYS.items():
        store.set_setting(key, getattr(settings, field))


def initialize_settings(store: SettingsBackend) -> AnalysisSettings:
    """Persist defaults for any setting that is missing or invalid."""
    settings = load_settings(store)
    for field, key in SETTING_KEYS.items():
        if _validated(field, store.get_setting(key)) is None:
            store.set_setting(key, getattr(settings, field))
    return settings
