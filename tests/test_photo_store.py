from __future__ import annotations

import pytest

from photo_prune.core.models import EmbeddingStatus, ExposureMetrics, QualityMetrics
from photo_prune.store import PhotoNotFoundError


def test_new_photos_are_pending(store, make_photo) -> None:
    store.add_or_update_photos([make_photo("b", 20), make_photo("a", 10)])
    pending = store.get_photos_without_embedding()
    assert [p.file_id for p in pending] == ["a", "b"]
    assert all(p.embedding_status == EmbeddingStatus.NEW for p in pending)
    assert store.get_all_photos_with_embedding() == []
    assert store.get_photo_count() == 2


def test_update_embedding_marks_done_with_metrics(store, make_photo) -> None:
    store.add_or_update_photos([make_photo("a", 10)])
    metrics = QualityMetrics(
        sharpness=14.5,
        exposure=ExposureMetrics(mean_brightness=0.4, clipping=0.01),
        quality_score=0.72,
    )
    store.update_photo_embedding("a", [0.25, 0.5, 0.75], metrics)

    photo = store.get_photo("a")
    assert photo is not None
    assert photo.embedding == [0.25, 0.5, 0.75]
    assert photo.embedding_status == EmbeddingStatus.DONE
    assert photo.quality_score == pytest.approx(0.72)
    assert photo.sharpness == pytest.approx(14.5)
    assert photo.exposure.mean_brightness == pytest.approx(0.4)
    assert [p.file_id for p in store.get_all_photos_with_embedding()] == ["a"]
    assert store.get_photos_without_embedding() == []


def test_update_embedding_accepts_plain_dict_metrics(store, make_photo) -> None:
    store.add_or_update_photos([make_photo("a")])
    store.update_photo_embedding("a", [1.0], {"quality_score": 0.3, "face": {"face_count": 1}})
    photo = store.get_photo("a")
    assert photo.quality_score == pytest.approx(0.3)
    assert photo.face.face_count == 1


def test_update_embedding_for_unknown_photo_fails(store) -> None:
    with pytest.raises(PhotoNotFoundError):
        store.update_photo_embedding("ghost", [1.0, 0.0])


def test_upsert_replaces_fields(store, make_photo) -> None:
    store.add_or_update_photos([make_photo("a", 10)])
    renamed = make_photo("a", 99).model_copy(update={"name": "renamed.jpg"})
    store.add_or_update_photos([renamed])
    photo = store.get_photo("a")
    assert photo.name == "renamed.jpg"
    assert photo.photo_taken_ts == 99
    assert store.get_photo_count() == 1


def test_delete_and_lookup(store, make_photo) -> None:
    store.add_or_update_photos([make_photo("a"), make_photo("b"), make_photo("c")])
    assert store.delete_photos(["a", "missing"]) == 1
    assert store.delete_photos([]) == 0
    assert store.get_photo("a") is None
    assert [p.file_id for p in store.get_photos(["c", "a", "b"])] == ["c", "b"]
    assert [p.file_id for p in store.get_all_photos()] == ["b", "c"]


def test_settings_round_trip(store) -> None:
    assert store.get_setting("workerCount") is None
    store.set_setting("workerCount", 2)
    store.set_setting("workerCount", 3)
    store.set_setting("lastEmbeddingExport", {"count": 4})
    assert store.get_setting("workerCount") == 3
    assert store.get_setting("lastEmbeddingExport") == {"count": 4}
