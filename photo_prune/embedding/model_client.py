from __future__ import annotations

import hashlib
import json
import logging
import os
import time
import urllib.error
import urllib.request
from typing import Any, Dict, Optional, Protocol

from photo_prune.core.models import (
    EmbeddingResult,
    ExposureMetrics,
    FaceMetrics,
    PhotoRecord,
    QualityMetrics,
)

logger = logging.getLogger(__name__)


class EmbeddingModelError(RuntimeError):
    """Raised when the embedding model cannot be loaded or fails on a photo."""


class EmbeddingModel(Protocol):
    """Opaque image -> vector function. Both calls may block."""

    def load(self) -> None: ...

    def embed(self, photo: PhotoRecord) -> EmbeddingResult: ...


def _server_url() -> str:
    return os.getenv("EMBEDDING_SERVER_URL", "http://localhost:3001")


def _timeout() -> int:
    return int(os.getenv("EMBEDDING_HTTP_TIMEOUT", "60"))


def _get_json(url: str, timeout: int = 10) -> Dict[str, Any]:
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            return json.loads(response.read().decode("utf-8"))
    except (urllib.error.URLError, urllib.error.HTTPError, TimeoutError) as exc:
        raise EmbeddingModelError(f"Embedding service call failed: {exc}") from exc


def _post_json(url: str, payload: Dict[str, Any], timeout: int = 60) -> Dict[str, Any]:
    request = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return json.loads(response.read().decode("utf-8"))
    except (urllib.error.URLError, urllib.error.HTTPError, TimeoutError) as exc:
        raise EmbeddingModelError(f"Embedding service call failed: {exc}") from exc


def parse_quality_metrics(raw: Optional[Dict[str, Any]]) -> Optional[QualityMetrics]:
    """Convert the service's camelCase quality payload into QualityMetrics."""
    if not raw:
        return None
    exposure_raw = raw.get("exposure") or None
    face_raw = raw.get("face") or None
    exposure = None
    if exposure_raw:
        exposure = ExposureMetrics(
            mean_brightness=exposure_raw.get("meanBrightness"),
            clipping=exposure_raw.get("clipping"),
            dynamic_range=exposure_raw.get("dynamicRange"),
            entropy=exposure_raw.get("entropy"),
        )
    face = None
    if face_raw:
        face = FaceMetrics(
            face_score=face_raw.get("faceScore") or 0.0,
            face_count=face_raw.get("faceCount") or 0,
            details=face_raw.get("details"),
        )
    return QualityMetrics(
        sharpness=raw.get("sharpness"),
        exposure=exposure,
        face=face,
        quality_score=raw.get("qualityScore"),
    )


class EmbeddingServiceModel:
    """Client for the local inference service that returns CLIP vectors and quality metrics."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: int | None = None,
        ready_attempts: int = 30,
        ready_delay: float = 2.0,
    ) -> None:
        self.base_url = (base_url or _server_url()).rstrip("/")
        self.timeout = timeout or _timeout()
        self.ready_attempts = ready_attempts
        self.ready_delay = ready_delay

    def load(self) -> None:
        # The service loads its models in the background after boot.
        for attempt in range(1, self.ready_attempts + 1):
            try:
                health = _get_json(f"{self.base_url}/health", timeout=self.timeout)
            except EmbeddingModelError:
                if attempt == self.ready_attempts:
                    raise
                health = {}
            if health.get("status") == "ok" and health.get("modelsLoaded", True):
                return
            time.sleep(self.ready_delay)
        raise EmbeddingModelError(f"Embedding service at {self.base_url} never loaded its models")

    def embed(self, photo: PhotoRecord) -> EmbeddingResult:
        if not photo.thumbnail_url:
            raise EmbeddingModelError("Thumbnail URL is missing.")
        response = _post_json(
            f"{self.base_url}/process-image",
            {"fileId": photo.file_id, "thumbnailUrl": photo.thumbnail_url},
            timeout=self.timeout,
        )
        embedding = response.get("embedding")
        if not embedding:
            raise EmbeddingModelError(response.get("error") or "No embedding in service response")
        return EmbeddingResult(
            file_id=photo.file_id,
            embedding=[float(v) for v in embedding],
            quality_metrics=parse_quality_metrics(response.get("qualityMetrics")),
        )


def _hash_to_vector(text: str, dim: int) -> list[float]:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    vector = []
    for i in range(dim):
        byte = digest[i % len(digest)]
        # Map byte to range [-1, 1]
        vector.append((byte / 255.0) * 2 - 1)
    return vector


class HashEmbeddingModel:
    """Deterministic stand-in model for offline development."""

    def __init__(self, dim: int = 32) -> None:
        self.dim = dim

    def load(self) -> None:
        return None

    def embed(self, photo: PhotoRecord) -> EmbeddingResult:
        return EmbeddingResult(
            file_id=photo.file_id,
            embedding=_hash_to_vector(photo.thumbnail_url or photo.file_id, self.dim),
        )


def model_from_env() -> EmbeddingModel:
    backend = os.getenv("EMBEDDING_BACKEND", "service").lower()
    if backend == "hash":
        return HashEmbeddingModel()
    if backend != "service":
        logger.warning("Unknown EMBEDDING_BACKEND=%s, using the inference service", backend)
    return EmbeddingServiceModel()
