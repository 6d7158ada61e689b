from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from pydantic import ValidationError

from photo_prune.core.models import PhotoRecord

from .model_client import EmbeddingModel

logger = logging.getLogger(__name__)

Message = dict[str, Any]


class EmbeddingWorker:
    """A persistent embedding worker that talks to its owner only through messages.

    Inbound: ``{"type": "setWorkerId", "workerId": n}``, ``{"type": "init"}`` and
    one photo payload per job. Outbound (on ``outbox``): ``model_loading``,
    ``model_ready`` or ``init_error`` during startup, then ``complete`` or
    ``error`` for each job. The model is owned by this worker alone and its
    blocking calls run in a thread so the event loop stays free.
    """

    def __init__(self, model: EmbeddingModel, outbox: asyncio.Queue[Message]) -> None:
        self.model = model
        self.worker_id: Optional[int] = None
        self._outbox = outbox
        self._inbox: asyncio.Queue[Message] = asyncio.Queue()
        self._task: Optional[asyncio.Task[None]] = None
        self._ready = False

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def post_message(self, message: Message) -> None:
        self._inbox.put_nowait(message)

    def terminate(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def _post(self, message: Message) -> None:
        self._outbox.put_nowait(message)

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            kind = message.get("type")
            if kind == "setWorkerId":
                self.worker_id = message.get("workerId")
            elif kind == "init":
                await self._load_model()
            else:
                await self._process(message)

    async def _load_model(self) -> None:
        if self._ready:
            self._post({"status": "model_ready", "workerId": self.worker_id})
            return
        self._post({"status": "model_loading", "workerId": self.worker_id})
        try:
            await asyncio.to_thread(self.model.load)
        except Exception as exc:  # model backends raise arbitrary errors
            logger.error("Worker %s failed to load model: %s", self.worker_id, exc)
            self._post({"status": "init_error", "workerId": self.worker_id, "error": str(exc)})
            return
        self._ready = True
        self._post({"status": "model_ready", "workerId": self.worker_id})

    async def _process(self, payload: Message) -> None:
        file_id = payload.get("file_id")
        try:
            photo = PhotoRecord.model_validate(payload)
            result = await asyncio.to_thread(self.model.embed, photo)
        except ValidationError as exc:
            logger.warning("Worker %s got a malformed job: %s", self.worker_id, exc)
            self._post({"status": "error", "file_id": file_id, "error": "Malformed photo payload"})
            return
        except Exception as exc:  # one failed photo must not kill the worker
            logger.warning("Worker %s failed for file %s: %s", self.worker_id, file_id, exc)
            self._post({"status": "error", "file_id": file_id, "error": str(exc)})
            return
        metrics = result.quality_metrics
        self._post(
            {
                "status": "complete",
                "file_id": file_id,
                "embedding": result.embedding,
                "qualityMetrics": metrics.model_dump() if metrics else None,
            }
        )
