from __future__ import annotations

import math
from typing import Optional, Sequence

from photo_prune.core.models import ExposureMetrics, FaceMetrics, PhotoRecord


def _finite(value: Optional[float], default: float) -> float:
    if value is None or not math.isfinite(value):
        return default
    return float(value)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(low, value), high)


def exposure_score(exposure: ExposureMetrics | None) -> float:
    exposure = exposure or ExposureMetrics()
    brightness = _finite(exposure.mean_brightness, 0.5)
    clipping = _finite(exposure.clipping, 0.0)
    dynamic_range = _finite(exposure.dynamic_range, 0.5)
    entropy = _finite(exposure.entropy, 0.5)

    brightness_score = 1 - min(1.0, abs(brightness - 0.5) * 2)
    clipping_score = 1.0 if clipping < 0.05 else max(0.0, 1 - (clipping - 0.05) * 10)
    dynamic_range_score = min(dynamic_range / 0.6, 1.0)
    return (
        brightness_score * 0.3
        + clipping_score * 0.3
        + dynamic_range_score * 0.2
        + entropy * 0.2
    )


def calculate_quality_score(
    sharpness: Optional[float],
    exposure: ExposureMetrics | None,
    face: FaceMetrics | None = None,
) -> float:
    """Blend sharpness, exposure and (when faces were found) face quality into 0..1."""
    sharpness_score = _clamp(_finite(sharpness, 0.0) / 30)
    exp_score = exposure_score(exposure)
    if face and face.face_count > 0 and math.isfinite(face.face_score):
        score = sharpness_score * 0.35 + exp_score * 0.30 + face.face_score * 0.35
    else:
        score = sharpness_score * 0.55 + exp_score * 0.45
    return _clamp(score if math.isfinite(score) else 0.5)


def pick_best_photo_by_quality(photos: Sequence[PhotoRecord]) -> PhotoRecord:
    """Return the highest-scoring photo; earlier photos win ties."""
    if not photos:
        raise ValueError("Cannot pick the best photo of an empty group")
    best = photos[0]
    for photo in photos[1:]:
        if (photo.quality_score or 0) > (best.quality_score or 0):
            best = photo
    return best
