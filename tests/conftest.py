from __future__ import annotations

import threading
import time
from typing import Callable, Iterable, Optional, Sequence

import pytest

from photo_prune.core.models import EmbeddingResult, PhotoRecord, QualityMetrics
from photo_prune.store import PhotoStore, init_db, session_factory

PhotoFactory = Callable[..., PhotoRecord]


@pytest.fixture
def store() -> PhotoStore:
    engine = init_db("sqlite+pysqlite:///:memory:")
    return PhotoStore(session_factory(engine))


@pytest.fixture
def make_photo() -> PhotoFactory:
    def _make(
        file_id: str,
        ts: int = 0,
        embedding: Optional[Sequence[float]] = None,
        quality_score: Optional[float] = None,
    ) -> PhotoRecord:
        return PhotoRecord(
            file_id=file_id,
            name=f"{file_id}.jpg",
            path=f"/drive/root:/Pictures/{file_id}.jpg",
            photo_taken_ts=ts,
            thumbnail_url=f"https://thumbs.example/{file_id}",
            embedding=list(embedding) if embedding is not None else None,
            quality_score=quality_score,
        )

    return _make


class FakeModel:
    """Embedding model double with controllable failures and blocking."""

    def __init__(
        self,
        fail_on: Iterable[str] = (),
        load_error: Optional[str] = None,
        load_delay: float = 0.0,
        gate: Optional[threading.Event] = None,
    ) -> None:
        self.fail_on = set(fail_on)
        self.load_error = load_error
        self.load_delay = load_delay
        self.gate = gate
        self.load_calls = 0
        self.embedded: list[str] = []

    def load(self) -> None:
        self.load_calls += 1
        if self.load_delay:
            time.sleep(self.load_delay)
        if self.load_error:
            raise RuntimeError(self.load_error)

    def embed(self, photo: PhotoRecord) -> EmbeddingResult:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if photo.file_id in self.fail_on:
            raise RuntimeError(f"cannot decode {photo.file_id}")
        self.embedded.append(photo.file_id)
        return EmbeddingResult(
            file_id=photo.file_id,
            embedding=[1.0, float(len(self.embedded))],
            quality_metrics=QualityMetrics(sharpness=20.0, quality_score=0.5),
        )


@pytest.fixture
def fake_model() -> type[FakeModel]:
    return FakeModel
