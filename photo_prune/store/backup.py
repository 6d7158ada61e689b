from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ValidationError

from photo_prune.core.models import QualityMetrics

from .photo_store import PhotoStore

logger = logging.getLogger(__name__)

EXPORT_FORMAT = "photo-prune-embeddings-v1"
APP_VERSION = "1.0.0"


class BackupError(ValueError):
    """Raised for empty exports and unreadable or malformed backup files."""


class ExportedEmbedding(BaseModel):
    file_id: str
    embedding: list[float]
    quality_score: float | None = None
    sharpness: float | None = None
    exposure: dict | None = None
    face: dict | None = None


class ImportResult(BaseModel):
    imported: int = 0
    updated: int = 0
    skipped: int = 0


def export_embeddings(store: PhotoStore, path: str | Path) -> dict:
    """Write every stored embedding to a JSON file and return its metadata."""
    embeddings = store.get_embedding_export_data()
    if not embeddings:
        raise BackupError("No embeddings found to export")

    metadata = {
        "export_date": datetime.now(timezone.utc).isoformat(),
        "app_version": APP_VERSION,
        "embedding_count": len(embeddings),
        "format": EXPORT_FORMAT,
    }
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps({"metadata": metadata, "embeddings": embeddings}), encoding="utf-8")

    size_mb = round(target.stat().st_size / (1024 * 1024), 2)
    store.set_setting(
        "lastEmbeddingExport",
        {
            "date": metadata["export_date"],
            "file_name": target.name,
            "embedding_count": len(embeddings),
            "file_size_mb": size_mb,
        },
    )
    logger.info("Backup: exported %d embeddings to %s (%.2f MB)", len(embeddings), target, size_mb)
    return metadata


def _read_backup(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise BackupError(f"Invalid embedding file {path}: {exc}") from exc
    if (
        not isinstance(data, dict)
        or not isinstance(data.get("metadata"), dict)
        or not isinstance(data.get("embeddings"), list)
    ):
        raise BackupError("Invalid embedding file format - missing required fields")
    if data["metadata"].get("format") != EXPORT_FORMAT:
        logger.warning("Backup: unknown format %r, attempting import anyway", data["metadata"].get("format"))
    return data


def import_embeddings(
    store: PhotoStore, path: str | Path, conflict_strategy: str = "skip"
) -> ImportResult:
    """Load embeddings from a backup file into photos already in the store.

    Photos missing from the store are skipped. Photos that already have an
    embedding are skipped unless ``conflict_strategy`` is ``"overwrite"``.
    """
    if conflict_strategy not in {"skip", "overwrite"}:
        raise ValueError(f"Unknown conflict strategy: {conflict_strategy}")
    source = Path(path)
    data = _read_backup(source)

    result = ImportResult()
    for raw in data["embeddings"]:
        try:
            entry = ExportedEmbedding.model_validate(raw)
            metrics = QualityMetrics(
                quality_score=entry.quality_score,
                sharpness=entry.sharpness,
                exposure=entry.exposure,
                face=entry.face,
            )
        except ValidationError:
            logger.warning("Backup: skipping malformed entry")
            result.skipped += 1
            continue
        existing = store.get_photo(entry.file_id)
        if existing is None:
            result.skipped += 1
            continue
        if existing.embedding is not None and conflict_strategy == "skip":
            result.skipped += 1
            continue
        store.update_photo_embedding(entry.file_id, entry.embedding, metrics)
        if existing.embedding is None:
            result.imported += 1
        else:
            result.updated += 1

    store.set_setting(
        "lastEmbeddingImport",
        {
            "date": datetime.now(timezone.utc).isoformat(),
            "source": source.name,
            "source_export_date": data["metadata"].get("export_date"),
            "conflict_strategy": conflict_strategy,
            **result.model_dump(),
        },
    )
    logger.info(
        "Backup: import from %s finished (imported=%d updated=%d skipped=%d)",
        source,
        result.imported,
        result.updated,
        result.skipped,
    )
    return result
