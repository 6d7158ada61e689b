from __future__ import annotations

import logging
from typing import Literal, Optional, Sequence

from pydantic import BaseModel, Field

from photo_prune.analysis import (
    find_photo_series,
    find_similar_groups,
    pick_best_photo_by_quality,
)
from photo_prune.analysis.similarity import ProgressCallback
from photo_prune.core.models import PhotoRecord, SeriesGroup, SeriesOptions, SimilarityGroup
from photo_prune.core.settings import AnalysisSettings, load_settings
from photo_prune.store import PhotoStore

logger = logging.getLogger(__name__)


class GroupView(BaseModel):
    """A group of photos as shown to the user, with a suggested keeper.

    ``selected_file_ids`` is the default delete selection: every member except
    the best-quality photo.
    """

    group_id: str
    kind: Literal["similar", "series"]
    photos: list[PhotoRecord]
    photo_count: int
    best_file_id: str
    selected_file_ids: list[str] = Field(default_factory=list)
    timestamp: int
    similarity: Optional[float] = None
    end_time: Optional[int] = None
    density: Optional[float] = None
    avg_time_between_photos: Optional[float] = None


def _selection(photos: Sequence[PhotoRecord]) -> tuple[str, list[str]]:
    best = pick_best_photo_by_quality(photos)
    return best.file_id, [photo.file_id for photo in photos if photo.file_id != best.file_id]


def build_similarity_views(groups: Sequence[SimilarityGroup]) -> list[GroupView]:
    views = []
    for idx, group in enumerate(groups):
        best, selected = _selection(group.photos)
        views.append(
            GroupView(
                group_id=f"sim-{idx}-{group.timestamp}",
                kind="similar",
                photos=group.photos,
                photo_count=len(group.photos),
                best_file_id=best,
                selected_file_ids=selected,
                timestamp=group.timestamp,
                similarity=group.similarity,
            )
        )
    return views


def build_series_views(groups: Sequence[SeriesGroup]) -> list[GroupView]:
    views = []
    for idx, group in enumerate(groups):
        best, selected = _selection(group.photos)
        views.append(
            GroupView(
                group_id=f"series-{idx}-{group.start_time}",
                kind="series",
                photos=group.photos,
                photo_count=group.photo_count,
                best_file_id=best,
                selected_file_ids=selected,
                timestamp=group.start_time,
                end_time=group.end_time,
                density=group.density,
                avg_time_between_photos=group.avg_time_between_photos,
            )
        )
    return views


def run_similarity_analysis(
    store: PhotoStore,
    settings: AnalysisSettings | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[GroupView]:
    settings = settings or load_settings(store)
    photos = store.get_all_photos_with_embedding()
    if not photos:
        logger.info("No photos with embeddings found to analyze")
        return []
    groups = find_similar_groups(
        photos,
        progress_callback,
        threshold=settings.similarity_threshold,
        session_gap_hours=settings.time_span_hours,
        sort_method=settings.results_sort,
        min_group_size=settings.min_group_size,
    )
    return build_similarity_views(groups)


def run_series_analysis(
    store: PhotoStore,
    settings: AnalysisSettings | None = None,
    progress_callback: ProgressCallback | None = None,
    sort_method: str | None = None,
) -> list[GroupView]:
    settings = settings or load_settings(store)
    options = SeriesOptions(
        min_group_size=settings.series_min_group_size,
        min_density=settings.series_min_density,
        max_time_gap_minutes=settings.series_max_time_gap,
    )
    groups = find_photo_series(
        store.get_all_photos(),
        options,
        progress_callback,
        sort_method=sort_method or settings.results_sort,
    )
    return build_series_views(groups)


def delete_selected(store: PhotoStore, file_ids: Sequence[str]) -> int:
    """Forget deleted photos locally; removing the drive file is the caller's job."""
    unique_ids = list(dict.fromkeys(file_ids))
    return store.delete_photos(unique_ids)
