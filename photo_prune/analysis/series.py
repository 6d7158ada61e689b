from __future__ import annotations

import logging
from typing import Sequence

from photo_prune.core.models import PhotoRecord, SeriesGroup, SeriesOptions

from .similarity import ProgressCallback

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000


def _timestamp(photo: PhotoRecord) -> int:
    return photo.photo_taken_ts or 0


def _split_runs(ordered: list[PhotoRecord], max_gap_ms: float) -> list[list[PhotoRecord]]:
    if not ordered:
        return []
    runs: list[list[PhotoRecord]] = []
    current = [ordered[0]]
    for previous, photo in zip(ordered, ordered[1:]):
        if _timestamp(photo) - _timestamp(previous) > max_gap_ms:
            runs.append(current)
            current = []
        current.append(photo)
    runs.append(current)
    return runs


def _describe_run(run: list[PhotoRecord]) -> SeriesGroup:
    start = _timestamp(run[0])
    end = _timestamp(run[-1])
    duration_minutes = (end - start) / MINUTE_MS
    # Runs shorter than a minute count as one minute.
    density = len(run) / max(duration_minutes, 1.0)
    avg_gap = (end - start) / 1000 / (len(run) - 1) if len(run) > 1 else 0.0
    return SeriesGroup(
        photos=run,
        photo_count=len(run),
        start_time=start,
        end_time=end,
        duration_minutes=duration_minutes,
        density=density,
        avg_time_between_photos=avg_gap,
    )


def sort_series_list(groups: list[SeriesGroup], sort_method: str = "group-size") -> list[SeriesGroup]:
    if sort_method == "date-desc":
        return sorted(groups, key=lambda g: g.start_time, reverse=True)
    if sort_method == "date-asc":
        return sorted(groups, key=lambda g: g.start_time)
    if sort_method == "density":
        return sorted(groups, key=lambda g: g.density, reverse=True)
    return sorted(groups, key=lambda g: g.photo_count, reverse=True)


def find_photo_series(
    photos: Sequence[PhotoRecord],
    options: SeriesOptions | None = None,
    progress_callback: ProgressCallback | None = None,
    sort_method: str = "group-size",
) -> list[SeriesGroup]:
    """Find rapid-fire bursts using capture times only (no embeddings needed)."""
    options = options or SeriesOptions()
    ordered = sorted(photos, key=_timestamp)
    runs = _split_runs(ordered, options.max_time_gap_minutes * MINUTE_MS)

    series: list[SeriesGroup] = []
    for index, run in enumerate(runs):
        if len(run) >= options.min_group_size:
            group = _describe_run(run)
            if group.density >= options.min_density:
                series.append(group)
        if progress_callback:
            progress_callback((index + 1) / len(runs) * 100)

    logger.info(
        "Series: %d photos, %d runs, %d series (min size=%d, min density=%.1f/min, max gap=%smin)",
        len(ordered),
        len(runs),
        len(series),
        options.min_group_size,
        options.min_density,
        options.max_time_gap_minutes,
    )
    return sort_series_list(series, sort_method)
