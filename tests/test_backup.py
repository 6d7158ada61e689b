from __future__ import annotations

import json
from pathlib import Path

import pytest

from photo_prune.store import BackupError, export_embeddings, import_embeddings


def test_export_requires_embeddings(store, make_photo, tmp_path: Path) -> None:
    store.add_or_update_photos([make_photo("a")])
    with pytest.raises(BackupError):
        export_embeddings(store, tmp_path / "empty.json")


def test_export_then_import_into_fresh_library(store, make_photo, tmp_path: Path) -> None:
    store.add_or_update_photos([make_photo("a", 1, [1.0, 0.0], quality_score=0.8), make_photo("b", 2)])
    target = tmp_path / "backup" / "embeddings.json"
    metadata = export_embeddings(store, target)
    assert metadata["embedding_count"] == 1
    assert metadata["format"] == "photo-prune-embeddings-v1"
    assert store.get_setting("lastEmbeddingExport")["embedding_count"] == 1

    store.delete_photos(["a"])
    store.add_or_update_photos([make_photo("a", 1)])
    result = import_embeddings(store, target)
    assert (result.imported, result.updated, result.skipped) == (1, 0, 0)
    restored = store.get_photo("a")
    assert restored.embedding == [1.0, 0.0]
    assert restored.quality_score == pytest.approx(0.8)
    assert store.get_setting("lastEmbeddingImport")["imported"] == 1


def test_import_conflict_strategies(store, make_photo, tmp_path: Path) -> None:
    backup = tmp_path / "embeddings.json"
    backup.write_text(
        json.dumps(
            {
                "metadata": {"format": "photo-prune-embeddings-v1", "export_date": "2024-01-01"},
                "embeddings": [
                    {"file_id": "a", "embedding": [0.0, 1.0]},
                    {"file_id": "gone", "embedding": [1.0, 1.0]},
                    {"file_id": "broken"},
                ],
            }
        )
    )
    store.add_or_update_photos([make_photo("a", embedding=[1.0, 0.0])])

    skipped = import_embeddings(store, backup)
    assert (skipped.imported, skipped.updated, skipped.skipped) == (0, 0, 3)
    assert store.get_photo("a").embedding == [1.0, 0.0]

    overwritten = import_embeddings(store, backup, conflict_strategy="overwrite")
    assert (overwritten.imported, overwritten.updated, overwritten.skipped) == (0, 1, 2)
    assert store.get_photo("a").embedding == [0.0, 1.0]

    with pytest.raises(ValueError):
        import_embeddings(store, backup, conflict_strategy="merge")


def test_import_rejects_invalid_files(store, tmp_path: Path) -> None:
    not_json = tmp_path / "bad.json"
    not_json.write_text("{nope")
    with pytest.raises(BackupError):
        import_embeddings(store, not_json)

    wrong_shape = tmp_path / "shape.json"
    wrong_shape.write_text(json.dumps({"embeddings": []}))
    with pytest.raises(BackupError):
        import_embeddings(store, wrong_shape)


def test_import_skips_entries_with_malformed_metrics(store, make_photo, tmp_path: Path) -> None:
    backup = tmp_path / "embeddings.json"
    backup.write_text(
        json.dumps(
            {
                "metadata": {"format": "photo-prune-embeddings-v1"},
                "embeddings": [
                    {"file_id": "a", "embedding": [0.0, 1.0], "exposure": {"clipping": "lots"}},
                    {"file_id": "b", "embedding": [1.0, 0.0], "face": {"face_count": 2}},
                ],
            }
        )
    )
    store.add_or_update_photos([make_photo("a"), make_photo("b")])

    result = import_embeddings(store, backup)
    assert (result.imported, result.updated, result.skipped) == (1, 0, 1)
    assert store.get_photo("a").embedding is None
    assert store.get_photo("b").face.face_count == 2
    assert store.get_setting("lastEmbeddingImport")["skipped"] == 1
