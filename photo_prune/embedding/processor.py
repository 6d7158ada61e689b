from __future__ import annotations

import asyncio
import logging
import os
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from photo_prune.core.models import PhotoRecord, ProcessorState
from photo_prune.store.photo_store import PhotoNotFoundError, PhotoStore

from .model_client import EmbeddingModel
from .worker import EmbeddingWorker, Message

logger = logging.getLogger(__name__)

DEFAULT_WORKER_COUNT = 4

ModelFactory = Callable[[], EmbeddingModel]
StatusCallback = Callable[[str, int, int], None]
QueueCallback = Callable[[int], None]


class WorkerInitError(RuntimeError):
    """Raised when a worker cannot load its model; embedding cannot proceed."""


def _positive_int(value: Any) -> Optional[int]:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return None
    return count if count >= 1 else None


@dataclass
class WorkerSlot:
    id: int
    worker: EmbeddingWorker
    outbox: asyncio.Queue
    ready: bool = False
    busy: bool = False
    current_file_id: Optional[str] = None
    listener: Optional[asyncio.Task] = None
    ready_future: Optional[asyncio.Future] = field(default=None, repr=False)


class EmbeddingProcessor:
    """Queue of photos awaiting embeddings, dispatched to a pool of persistent workers.

    State moves idle -> processing <-> paused -> idle. Pausing only stops new
    dispatch: in-flight jobs finish and workers stay loaded. Each photo is
    attempted once per enqueue; failed jobs are counted and dropped.
    """

    def __init__(
        self,
        store: PhotoStore,
        model_factory: ModelFactory,
        *,
        worker_count: int | None = None,
        poll_interval: float = 0.05,
        init_timeout: float | None = None,
        on_status: StatusCallback | None = None,
        on_queue_change: QueueCallback | None = None,
    ) -> None:
        self.store = store
        self.model_factory = model_factory
        self.poll_interval = poll_interval
        self.init_timeout = init_timeout
        self._worker_count = worker_count
        self._on_status = on_status or (lambda message, done, total: None)
        self._on_queue_change = on_queue_change or (lambda length: None)

        self.workers: list[WorkerSlot] = []
        self.workers_initialized = False
        self._init_lock = asyncio.Lock()

        self.queue: deque[PhotoRecord] = deque()
        self.is_processing = False
        self.is_paused = False
        self.processed_count = 0
        self.error_count = 0
        self._total_to_process = 0
        self._current: Optional[asyncio.Task[None]] = None

    def _status(self, message: str) -> None:
        logger.info("Embeddings: %s", message)
        self._on_status(message, self.processed_count, self._total_to_process)

    def get_worker_count(self) -> int:
        """Resolve the pool size: constructor value, EMBEDDING_WORKERS, stored setting, then 4."""
        if self._worker_count is not None:
            return self._worker_count
        env_value = os.getenv("EMBEDDING_WORKERS")
        if env_value is not None:
            count = _positive_int(env_value)
            if count is not None:
                return count
            logger.warning("Ignoring invalid EMBEDDING_WORKERS=%r", env_value)
        try:
            value = self.store.get_setting("workerCount")
        except SQLAlchemyError:
            logger.exception("Error reading workerCount setting")
            value = None
        if value is None:
            return DEFAULT_WORKER_COUNT
        count = _positive_int(value)
        if count is None:
            logger.warning("Invalid worker count %r, using %d", value, DEFAULT_WORKER_COUNT)
            return DEFAULT_WORKER_COUNT
        return count

    def add_to_queue(self, photos: Iterable[PhotoRecord], priority: bool = False) -> int:
        """Queue photos that are neither queued nor in flight; return how many were added."""
        photos = list(photos)
        if not photos:
            return 0
        known = {photo.file_id for photo in self.queue}
        known.update(slot.current_file_id for slot in self.workers if slot.current_file_id)
        new_photos: list[PhotoRecord] = []
        for photo in photos:
            if photo.file_id in known:
                continue
            known.add(photo.file_id)
            new_photos.append(photo)

        if not new_photos:
            logger.debug("Skipped adding photos - all %d already queued", len(photos))
            return 0
        if priority:
            self.queue.extendleft(reversed(new_photos))
            logger.info("Added %d photos to the front of the embedding queue", len(new_photos))
        else:
            self.queue.extend(new_photos)
            logger.info("Added %d photos to the embedding queue", len(new_photos))
        self._on_queue_change(len(self.queue))
        return len(new_photos)

    async def initialize_workers(self) -> None:
        async with self._init_lock:
            if self.workers_initialized:
                logger.debug("Workers already initialized")
                return
            count = self.get_worker_count()
            logger.info("Initializing %d persistent workers", count)
            loop = asyncio.get_running_loop()
            for worker_id in range(count):
                outbox: asyncio.Queue[Message] = asyncio.Queue()
                slot = WorkerSlot(
                    id=worker_id,
                    worker=EmbeddingWorker(self.model_factory(), outbox),
                    outbox=outbox,
                    ready_future=loop.create_future(),
                )
                slot.listener = asyncio.create_task(self._listen(slot))
                slot.worker.start()
                slot.worker.post_message({"type": "setWorkerId", "workerId": worker_id})
                slot.worker.post_message({"type": "init"})
                self.workers.append(slot)

            try:
                await asyncio.wait_for(
                    asyncio.gather(*(slot.ready_future for slot in self.workers)),
                    timeout=self.init_timeout,
                )
            except asyncio.TimeoutError as exc:
                self._teardown()
                raise WorkerInitError("Timed out waiting for embedding workers to load") from exc
            except WorkerInitError:
                self._teardown()
                raise
            self.workers_initialized = True
            logger.info("All %d workers ready", count)

    def _teardown(self) -> None:
        for slot in self.workers:
            slot.worker.terminate()
            if slot.listener is not None:
                slot.listener.cancel()
            if slot.ready_future is not None and not slot.ready_future.done():
                slot.ready_future.cancel()
        self.workers = []
        self.workers_initialized = False

    def terminate_workers(self) -> None:
        logger.info("Terminating all workers")
        if self._current is not None and not self._current.done():
            self._current.cancel()
        self._current = None
        self._teardown()
        self.is_processing = False

    async def start(self) -> None:
        if self.is_processing:
            logger.debug("Embedding workers already running")
            return
        if not self.queue:
            pending = self.store.get_photos_without_embedding()
            if not pending:
                self._status("No photos need embeddings")
                return
            self.add_to_queue(pending)
        # Claimed before any await so overlapping calls launch a single run.
        self.is_processing = True
        if not self.workers_initialized:
            try:
                await self.initialize_workers()
            except (WorkerInitError, asyncio.CancelledError):
                self.is_processing = False
                raise
        self.is_paused = False
        self._current = asyncio.create_task(self.process_queue())

    def pause(self) -> None:
        self.is_paused = True
        self._status("Embedding generation paused")

    async def resume(self) -> None:
        if not self.is_processing and self.queue:
            await self.start()
        else:
            self.is_paused = False
            self._status("Embedding generation resumed")

    async def wait(self) -> None:
        """Wait until the current processing run (if any) finishes."""
        if self._current is not None:
            await self._current

    def _free_slot(self) -> Optional[WorkerSlot]:
        for slot in self.workers:
            if slot.ready and not slot.busy:
                return slot
        return None

    async def process_queue(self) -> None:
        self.processed_count = 0
        self.error_count = 0
        self._total_to_process = len(self.queue)
        self._status(f"Processing {self._total_to_process} photos...")

        while True:
            while self.queue and not self.is_paused:
                slot = self._free_slot()
                if slot is None:
                    await asyncio.sleep(self.poll_interval)
                    continue
                photo = self.queue.popleft()
                slot.busy = True
                slot.current_file_id = photo.file_id
                slot.worker.post_message(photo.model_dump(mode="json"))
                # Yield so listeners can run between dispatches.
                await asyncio.sleep(0)

            while any(slot.busy for slot in self.workers):
                await asyncio.sleep(self.poll_interval)

            # A resume while in-flight jobs were draining continues this run.
            if not self.queue or self.is_paused:
                break

        self.is_processing = False
        self._on_queue_change(len(self.queue))
        if not self.queue:
            self._status("All photos processed!")
        elif self.is_paused:
            self._status(f"Paused - {len(self.queue)} photos remaining in queue")

    async def _listen(self, slot: WorkerSlot) -> None:
        while True:
            message = await slot.outbox.get()
            status = message.get("status")
            if status == "model_loading":
                logger.debug("Worker %d loading models", slot.id)
            elif status == "model_ready":
                slot.ready = True
                logger.info("Worker %d ready (models loaded)", slot.id)
                if slot.ready_future is not None and not slot.ready_future.done():
                    slot.ready_future.set_result(None)
            elif status == "init_error":
                if slot.ready_future is not None and not slot.ready_future.done():
                    slot.ready_future.set_exception(
                        WorkerInitError(f"Worker {slot.id} failed to load model: {message.get('error')}")
                    )
            elif status in ("complete", "error"):
                try:
                    self._handle_result(slot, message)
                except Exception:
                    logger.exception(
                        "Worker %d: failed to handle result for %s", slot.id, message.get("file_id")
                    )
                    # The slot is freed even when result handling fails.
                    if slot.busy:
                        self.error_count += 1
                        self.processed_count += 1
                        self._release(slot)

    def _release(self, slot: WorkerSlot) -> None:
        slot.busy = False
        slot.current_file_id = None

    def _handle_result(self, slot: WorkerSlot, message: Message) -> None:
        file_id = message.get("file_id")
        if file_id != slot.current_file_id:
            logger.warning("Worker %d sent a result for unexpected file %s", slot.id, file_id)
            return
        if message.get("status") == "complete":
            try:
                self.store.update_photo_embedding(
                    file_id, message["embedding"], message.get("qualityMetrics")
                )
            except (PhotoNotFoundError, SQLAlchemyError, ValidationError) as exc:
                logger.error("Could not store embedding for %s: %s", file_id, exc)
                self.error_count += 1
        else:
            logger.error("Worker error for file %s: %s", file_id, message.get("error"))
            self.error_count += 1
        self.processed_count += 1
        self._release(slot)
        suffix = " (some errors)" if self.error_count else ""
        message = (
            f"Processing photos... {self.processed_count}/{self._total_to_process} complete, "
            f"{len(self.queue)} in queue{suffix}"
        )
        logger.debug("Embeddings: %s", message)
        self._on_status(message, self.processed_count, self._total_to_process)

    def get_state(self) -> ProcessorState:
        return ProcessorState(
            queue_length=len(self.queue),
            is_processing=self.is_processing,
            is_paused=self.is_paused,
            workers_initialized=self.workers_initialized,
            worker_count=len(self.workers),
        )
