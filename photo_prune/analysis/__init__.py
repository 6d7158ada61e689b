"""Similarity, series and quality analysis over photo records."""

from .quality import calculate_quality_score, pick_best_photo_by_quality
from .series import find_photo_series, sort_series_list
from .similarity import (
    MissingEmbeddingError,
    cosine_similarity,
    find_similar_groups,
    find_similar_to_photo,
    sort_group_list,
    split_sessions,
)

__all__ = [
    "MissingEmbeddingError",
    "calculate_quality_score",
    "cosine_similarity",
    "find_photo_series",
    "find_similar_groups",
    "find_similar_to_photo",
    "pick_best_photo_by_quality",
    "sort_group_list",
    "sort_series_list",
    "split_sessions",
]
