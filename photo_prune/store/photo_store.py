from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from photo_prune.core.models import (
    EmbeddingStatus,
    ExposureMetrics,
    FaceMetrics,
    PhotoRecord,
    QualityMetrics,
)

from .schema import PhotoRow, SettingRow

logger = logging.getLogger(__name__)


class PhotoNotFoundError(LookupError):
    """Raised when an operation targets a file_id that is not in the store."""


def _to_record(row: PhotoRow) -> PhotoRecord:
    return PhotoRecord(
        file_id=row.file_id,
        name=row.name,
        path=row.path,
        photo_taken_ts=row.photo_taken_ts,
        last_modified_ts=row.last_modified_ts,
        thumbnail_url=row.thumbnail_url,
        embedding=row.embedding,
        quality_score=row.quality_score,
        sharpness=row.sharpness,
        exposure=ExposureMetrics(**row.exposure) if row.exposure else None,
        face=FaceMetrics(**row.face) if row.face else None,
    )


def _coerce_metrics(metrics: QualityMetrics | dict | None) -> Optional[QualityMetrics]:
    if metrics is None or isinstance(metrics, QualityMetrics):
        return metrics
    return QualityMetrics.model_validate(metrics)


class PhotoStore:
    """Local durable store for photo records and app settings.

    Every call opens its own short-lived session, so the store can be shared by
    the analysis code, the embedding processor and the HTTP layer. Writes are
    single-key upserts by ``file_id``.
    """

    def __init__(self, sessions: sessionmaker[Session]) -> None:
        self._sessions = sessions

    def add_or_update_photos(self, photos: Iterable[PhotoRecord]) -> int:
        count = 0
        with self._sessions() as session:
            for photo in photos:
                row = session.get(PhotoRow, photo.file_id)
                if row is None:
                    row = PhotoRow(file_id=photo.file_id)
                    session.add(row)
                row.name = photo.name
                row.path = photo.path
                row.photo_taken_ts = photo.photo_taken_ts or 0
                row.last_modified_ts = photo.last_modified_ts
                row.thumbnail_url = photo.thumbnail_url
                row.embedding = list(photo.embedding) if photo.embedding is not None else None
                row.embedding_status = photo.embedding_status.value
                row.quality_score = photo.quality_score
                row.sharpness = photo.sharpness
                row.exposure = photo.exposure.model_dump() if photo.exposure else None
                row.face = photo.face.model_dump() if photo.face else None
                row.updated_at = datetime.now(timezone.utc)
                count += 1
            session.commit()
        logger.debug("Store: upserted %d photos", count)
        return count

    def delete_photos(self, file_ids: Sequence[str]) -> int:
        if not file_ids:
            return 0
        with self._sessions() as session:
            result = session.execute(delete(PhotoRow).where(PhotoRow.file_id.in_(list(file_ids))))
            session.commit()
        deleted = int(result.rowcount or 0)
        logger.info("Store: deleted %d of %d photos", deleted, len(file_ids))
        return deleted

    def get_photo(self, file_id: str) -> PhotoRecord | None:
        with self._sessions() as session:
            row = session.get(PhotoRow, file_id)
            return _to_record(row) if row else None

    def get_photo_count(self) -> int:
        with self._sessions() as session:
            return int(session.scalar(select(func.count()).select_from(PhotoRow)) or 0)

    def get_all_photos(self) -> list[PhotoRecord]:
        with self._sessions() as session:
            rows = session.scalars(
                select(PhotoRow).order_by(PhotoRow.photo_taken_ts.asc(), PhotoRow.file_id.asc())
            ).all()
            return [_to_record(row) for row in rows]

    def get_photos(self, file_ids: Sequence[str]) -> list[PhotoRecord]:
        """Return the stored photos for ``file_ids`` in the order given, skipping unknown ids."""
        if not file_ids:
            return []
        with self._sessions() as session:
            rows = session.scalars(select(PhotoRow).where(PhotoRow.file_id.in_(list(file_ids)))).all()
            by_id = {row.file_id: _to_record(row) for row in rows}
        return [by_id[file_id] for file_id in file_ids if file_id in by_id]

    def _by_status(self, status: EmbeddingStatus) -> list[PhotoRecord]:
        with self._sessions() as session:
            rows = session.scalars(
                select(PhotoRow)
                .where(PhotoRow.embedding_status == status.value)
                .order_by(PhotoRow.photo_taken_ts.asc(), PhotoRow.file_id.asc())
            ).all()
            return [_to_record(row) for row in rows]

    def get_photos_without_embedding(self) -> list[PhotoRecord]:
        return self._by_status(EmbeddingStatus.NEW)

    def get_all_photos_with_embedding(self) -> list[PhotoRecord]:
        return self._by_status(EmbeddingStatus.DONE)

    def update_photo_embedding(
        self,
        file_id: str,
        embedding: Sequence[float],
        quality_metrics: QualityMetrics | dict | None = None,
    ) -> None:
        """Attach an embedding (and optional quality metrics) to a stored photo."""
        metrics = _coerce_metrics(quality_metrics)
        with self._sessions() as session:
            row = session.get(PhotoRow, file_id)
            if row is None:
                raise PhotoNotFoundError(f"Photo with id {file_id} not found")
            row.embedding = [float(v) for v in embedding]
            row.embedding_status = EmbeddingStatus.DONE.value
            if metrics is not None:
                row.quality_score = metrics.quality_score
                row.sharpness = metrics.sharpness
                row.exposure = metrics.exposure.model_dump() if metrics.exposure else None
                row.face = metrics.face.model_dump() if metrics.face else None
            row.updated_at = datetime.now(timezone.utc)
            session.commit()

    def get_embedding_export_data(self) -> list[dict[str, Any]]:
        return [
            {
                "file_id": photo.file_id,
                "embedding": photo.embedding,
                "quality_score": photo.quality_score,
                "sharpness": photo.sharpness,
                "exposure": photo.exposure.model_dump() if photo.exposure else None,
                "face": photo.face.model_dump() if photo.face else None,
            }
            for photo in self.get_all_photos_with_embedding()
        ]

    def get_setting(self, key: str) -> Any:
        with self._sessions() as session:
            row = session.get(SettingRow, key)
            return row.value if row else None

    def set_setting(self, key: str, value: Any) -> None:
        with self._sessions() as session:
            row = session.get(SettingRow, key)
            if row is None:
                session.add(SettingRow(key=key, value=value))
            else:
                row.value = value
            session.commit()
