from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from photo_prune.analysis import MissingEmbeddingError, find_similar_to_photo
from photo_prune.api.bridge import (
    GroupView,
    delete_selected,
    run_series_analysis,
    run_similarity_analysis,
)
from photo_prune.core.env import configure_logging, database_url, load_dotenv_if_present
from photo_prune.core.settings import AnalysisSettings, initialize_settings, save_settings
from photo_prune.embedding import EmbeddingProcessor, WorkerInitError, model_from_env
from photo_prune.store import PhotoNotFoundError, PhotoStore, init_db, session_factory

load_dotenv_if_present()
configure_logging()

DATABASE_URL = database_url()
engine = init_db(DATABASE_URL)
SessionLocal = session_factory(engine)
store = PhotoStore(SessionLocal)
initialize_settings(store)
processor = EmbeddingProcessor(store, model_from_env)

# Vectors are large and useless to the UI.
PHOTO_EXCLUDE = {"photos": {"__all__": {"embedding"}}}


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    processor.terminate_workers()


app = FastAPI(title="Photo Prune API", lifespan=lifespan)


class DeleteRequest(BaseModel):
    file_ids: list[str]


class QueueRequest(BaseModel):
    file_ids: list[str]
    priority: bool = False


def _views(views: list[GroupView]) -> list[dict]:
    return [view.model_dump(exclude=PHOTO_EXCLUDE) for view in views]


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "photos": store.get_photo_count()}


@app.get("/settings")
def get_settings() -> dict:
    return {"settings": initialize_settings(store).model_dump()}


@app.put("/settings")
def put_settings(settings: AnalysisSettings) -> dict:
    save_settings(store, settings)
    return {"settings": settings.model_dump()}


@app.get("/analysis/similar")
def similar_groups(
    threshold: Optional[float] = None,
    session_gap_hours: Optional[float] = None,
    sort: Optional[str] = None,
) -> dict:
    settings = initialize_settings(store)
    overrides = {
        "similarity_threshold": threshold,
        "time_span_hours": session_gap_hours,
        "results_sort": sort,
    }
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        try:
            settings = AnalysisSettings(**{**settings.model_dump(), **updates})
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    views = run_similarity_analysis(store, settings)
    return {"groups": _views(views)}


@app.get("/analysis/series")
def photo_series(sort: Optional[str] = None) -> dict:
    views = run_series_analysis(store, initialize_settings(store), sort_method=sort)
    return {"series": _views(views)}


@app.get("/photos/{file_id}/similar")
def similar_to_photo(file_id: str, limit: int = 20) -> dict:
    try:
        matches = find_similar_to_photo(store, file_id, max_results=limit)
    except PhotoNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Photo not found") from exc
    except MissingEmbeddingError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {
        "results": [
            {"photo": match.photo.model_dump(exclude={"embedding"}), "similarity": match.similarity}
            for match in matches
        ]
    }


@app.delete("/photos")
def delete_photos(req: DeleteRequest) -> dict:
    return {"deleted": delete_selected(store, req.file_ids)}


@app.get("/embeddings/state")
def embedding_state() -> dict:
    return processor.get_state().model_dump(by_alias=True)


@app.post("/embeddings/queue")
def queue_photos(req: QueueRequest) -> dict:
    photos = [photo for photo in store.get_photos(req.file_ids) if photo.embedding is None]
    added = processor.add_to_queue(photos, priority=req.priority)
    return {"added": added, **processor.get_state().model_dump(by_alias=True)}


@app.post("/embeddings/start")
async def start_embeddings() -> dict:
    try:
        await processor.start()
    except WorkerInitError as exc:
        processor.terminate_workers()
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return processor.get_state().model_dump(by_alias=True)


@app.post("/embeddings/pause")
def pause_embeddings() -> dict:
    processor.pause()
    return processor.get_state().model_dump(by_alias=True)


@app.post("/embeddings/resume")
async def resume_embeddings() -> dict:
    try:
        await processor.resume()
    except WorkerInitError as exc:
        processor.terminate_workers()
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return processor.get_state().model_dump(by_alias=True)
