from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EmbeddingStatus(str, Enum):
    NEW = "new"
    DONE = "done"


class ExposureMetrics(BaseModel):
    """Histogram statistics of a thumbnail, each normalized to 0..1."""

    mean_brightness: Optional[float] = None
    clipping: Optional[float] = None
    dynamic_range: Optional[float] = None
    entropy: Optional[float] = None


class FaceMetrics(BaseModel):
    face_score: float = 0.0
    face_count: int = 0
    details: Optional[dict] = None


class QualityMetrics(BaseModel):
    sharpness: Optional[float] = None
    exposure: Optional[ExposureMetrics] = None
    face: Optional[FaceMetrics] = None
    quality_score: Optional[float] = None


class PhotoRecord(BaseModel):
    """A photo known to the local store.

    ``photo_taken_ts`` is epoch milliseconds. When the capture time is missing
    the last-modified time is used instead. ``embedding_status`` always
    follows the presence of ``embedding``.
    """

    file_id: str
    name: str = ""
    path: str = ""
    photo_taken_ts: Optional[int] = None
    last_modified_ts: Optional[int] = None
    thumbnail_url: Optional[str] = None
    embedding: Optional[list[float]] = None
    embedding_status: EmbeddingStatus = EmbeddingStatus.NEW
    quality_score: Optional[float] = None
    sharpness: Optional[float] = None
    exposure: Optional[ExposureMetrics] = None
    face: Optional[FaceMetrics] = None

    @model_validator(mode="after")
    def _normalize(self) -> "PhotoRecord":
        if self.photo_taken_ts is None:
            self.photo_taken_ts = self.last_modified_ts if self.last_modified_ts is not None else 0
        self.embedding_status = (
            EmbeddingStatus.DONE if self.embedding is not None else EmbeddingStatus.NEW
        )
        return self


class EmbeddingResult(BaseModel):
    file_id: str
    embedding: list[float]
    quality_metrics: Optional[QualityMetrics] = None


class SimilarityGroup(BaseModel):
    photos: list[PhotoRecord]
    timestamp: int
    similarity: float


class SimilarPhoto(BaseModel):
    photo: PhotoRecord
    similarity: float


class SeriesOptions(BaseModel):
    min_group_size: int = 20
    min_density: float = 3.0  # photos per minute
    max_time_gap_minutes: float = 5.0


class SeriesGroup(BaseModel):
    photos: list[PhotoRecord]
    photo_count: int
    start_time: int
    end_time: int
    duration_minutes: float
    density: float
    avg_time_between_photos: float  # seconds


class ProcessorState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queue_length: int = Field(alias="queueLength")
    is_processing: bool = Field(alias="isProcessing")
    is_paused: bool = Field(alias="isPaused")
    workers_initialized: bool = Field(alias="workersInitialized")
    worker_count: int = Field(alias="workerCount")
