from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from photo_prune.core.models import PhotoRecord, SimilarPhoto, SimilarityGroup
from photo_prune.store.photo_store import PhotoNotFoundError, PhotoStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

DEFAULT_THRESHOLD = 0.90
DEFAULT_SESSION_GAP_HOURS = 1.0
HOUR_MS = 60 * 60 * 1000


class MissingEmbeddingError(ValueError):
    """Raised when a reference photo has no embedding to compare against."""


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for missing, mismatched or zero vectors."""
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    denom = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if denom == 0 or not np.isfinite(denom):
        return 0.0
    score = float(np.dot(vec_a, vec_b) / denom)
    if not np.isfinite(score):
        return 0.0
    return float(np.clip(score, -1.0, 1.0))


def _timestamp(photo: PhotoRecord) -> int:
    return photo.photo_taken_ts or 0


def split_sessions(
    photos: Sequence[PhotoRecord], session_gap_hours: float = DEFAULT_SESSION_GAP_HOURS
) -> list[list[PhotoRecord]]:
    """Split photos into temporal sessions separated by gaps larger than the boundary.

    A gap of 0 hours disables splitting: every photo lands in one session.
    """
    ordered = sorted(photos, key=_timestamp)
    if not ordered:
        return []
    if session_gap_hours <= 0:
        return [ordered]

    boundary = session_gap_hours * HOUR_MS
    sessions: list[list[PhotoRecord]] = []
    current = [ordered[0]]
    for previous, photo in zip(ordered, ordered[1:]):
        if _timestamp(photo) - _timestamp(previous) > boundary:
            sessions.append(current)
            current = []
        current.append(photo)
    sessions.append(current)
    return sessions


def _cluster_session(
    session: list[PhotoRecord], threshold: float, min_group_size: int
) -> list[SimilarityGroup]:
    # Membership is decided against the seed only (the earliest unvisited photo),
    # so members of a group are not necessarily similar to each other.
    groups: list[SimilarityGroup] = []
    visited = [False] * len(session)
    for i, seed in enumerate(session):
        if visited[i]:
            continue
        visited[i] = True
        members = [seed]
        for j in range(i + 1, len(session)):
            if visited[j]:
                continue
            if cosine_similarity(seed.embedding, session[j].embedding) > threshold:
                members.append(session[j])
                visited[j] = True
        if len(members) >= min_group_size:
            groups.append(
                SimilarityGroup(photos=members, timestamp=_timestamp(seed), similarity=threshold)
            )
    return groups


def sort_group_list(groups: list[SimilarityGroup], sort_method: str = "group-size") -> list[SimilarityGroup]:
    if sort_method == "date-desc":
        return sorted(groups, key=lambda g: g.timestamp, reverse=True)
    if sort_method == "date-asc":
        return sorted(groups, key=lambda g: g.timestamp)
    if sort_method != "group-size":
        logger.debug("Unknown sort method %r, using group-size", sort_method)
    return sorted(groups, key=lambda g: len(g.photos), reverse=True)


def find_similar_groups(
    photos: Sequence[PhotoRecord],
    progress_callback: ProgressCallback | None = None,
    threshold: float = DEFAULT_THRESHOLD,
    session_gap_hours: float = DEFAULT_SESSION_GAP_HOURS,
    sort_method: str = "group-size",
    min_group_size: int = 2,
) -> list[SimilarityGroup]:
    """Group visually similar photos taken within the same temporal session."""
    min_group_size = max(2, min_group_size)
    sessions = split_sessions(photos, session_gap_hours)
    logger.info(
        "Similarity: %d photos in %d sessions (threshold=%.2f, gap=%sh)",
        len(photos),
        len(sessions),
        threshold,
        session_gap_hours,
    )

    groups: list[SimilarityGroup] = []
    for index, session in enumerate(sessions):
        if len(session) >= 2:
            groups.extend(_cluster_session(session, threshold, min_group_size))
        if progress_callback:
            progress_callback((index + 1) / len(sessions) * 100)

    logger.info("Similarity: found %d groups", len(groups))
    return sort_group_list(groups, sort_method)


def find_similar_to_photo(
    store: PhotoStore, reference_file_id: str, max_results: int = 20
) -> list[SimilarPhoto]:
    """Rank every other embedded photo by similarity to a reference photo."""
    reference = store.get_photo(reference_file_id)
    if reference is None:
        raise PhotoNotFoundError(f"Photo with id {reference_file_id} not found")
    if reference.embedding is None:
        raise MissingEmbeddingError(f"Photo {reference_file_id} has no embedding")

    scored = [
        SimilarPhoto(photo=photo, similarity=cosine_similarity(reference.embedding, photo.embedding))
        for photo in store.get_all_photos_with_embedding()
        if photo.file_id != reference_file_id
    ]
    scored.sort(key=lambda item: item.similarity, reverse=True)
    return scored[:max_results]
