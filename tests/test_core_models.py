from photo_prune.core.models import EmbeddingStatus, PhotoRecord, ProcessorState


def test_status_follows_embedding_presence() -> None:
    fresh = PhotoRecord(file_id="a", embedding_status="done")
    assert fresh.embedding_status == EmbeddingStatus.NEW

    embedded = PhotoRecord(file_id="b", embedding=[0.1, 0.2])
    assert embedded.embedding_status == EmbeddingStatus.DONE


def test_capture_time_falls_back_to_last_modified() -> None:
    photo = PhotoRecord(file_id="a", last_modified_ts=1_700_000_000_000)
    assert photo.photo_taken_ts == 1_700_000_000_000

    taken = PhotoRecord(file_id="b", photo_taken_ts=5, last_modified_ts=10)
    assert taken.photo_taken_ts == 5

    bare = PhotoRecord(file_id="c")
    assert bare.photo_taken_ts == 0


def test_processor_state_dumps_camel_case() -> None:
    state = ProcessorState(
        queue_length=3,
        is_processing=True,
        is_paused=False,
        workers_initialized=True,
        worker_count=4,
    )
    assert state.model_dump(by_alias=True) == {
        "queueLength": 3,
        "isProcessing": True,
        "isPaused": False,
        "workersInitialized": True,
        "workerCount": 4,
    }
