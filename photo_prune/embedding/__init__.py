"""Embedding generation: model clients, persistent workers and the queue processor."""

from .model_client import (
    EmbeddingModel,
    EmbeddingModelError,
    EmbeddingServiceModel,
    HashEmbeddingModel,
    model_from_env,
)
from .processor import EmbeddingProcessor, WorkerInitError, WorkerSlot
from .worker import EmbeddingWorker

__all__ = [
    "EmbeddingModel",
    "EmbeddingModelError",
    "EmbeddingProcessor",
    "EmbeddingServiceModel",
    "EmbeddingWorker",
    "HashEmbeddingModel",
    "WorkerInitError",
    "WorkerSlot",
    "model_from_env",
]
