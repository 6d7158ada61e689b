from __future__ import annotations

from photo_prune.api.bridge import delete_selected, run_series_analysis, run_similarity_analysis
from photo_prune.core.settings import AnalysisSettings


def test_similarity_views_suggest_best_photo(store, make_photo) -> None:
    store.add_or_update_photos(
        [
            make_photo("a", 0, [1.0, 0.0], quality_score=0.2),
            make_photo("b", 1000, [0.99, 0.05], quality_score=0.9),
            make_photo("c", 2000, [0.98, 0.1]),
            make_photo("d", 3000, [0.0, 1.0], quality_score=1.0),
            make_photo("pending", 4000),
        ]
    )
    progress: list[float] = []
    views = run_similarity_analysis(store, progress_callback=progress.append)

    assert len(views) == 1
    view = views[0]
    assert view.kind == "similar"
    assert view.group_id == "sim-0-0"
    assert [p.file_id for p in view.photos] == ["a", "b", "c"]
    assert view.photo_count == 3
    assert view.best_file_id == "b"
    assert view.selected_file_ids == ["a", "c"]
    assert view.similarity == 0.90
    assert progress == [100.0]


def test_similarity_respects_min_group_size(store, make_photo) -> None:
    store.add_or_update_photos(
        [make_photo("a", 0, [1.0, 0.0]), make_photo("b", 1000, [1.0, 0.01])]
    )
    assert len(run_similarity_analysis(store, AnalysisSettings(min_group_size=3))) == 0
    assert len(run_similarity_analysis(store, AnalysisSettings(min_group_size=2))) == 1


def test_similarity_without_embeddings(store, make_photo) -> None:
    store.add_or_update_photos([make_photo("a"), make_photo("b")])
    assert run_similarity_analysis(store) == []


def test_series_views_use_stored_settings(store, make_photo) -> None:
    burst = [make_photo(f"s{i:02d}", i * 1000, quality_score=0.1) for i in range(20)]
    burst[7] = make_photo("s07", 7000, quality_score=0.95)
    store.add_or_update_photos(burst)

    views = run_series_analysis(store)
    assert len(views) == 1
    view = views[0]
    assert view.kind == "series"
    assert view.group_id == "series-0-0"
    assert view.photo_count == 20
    assert view.best_file_id == "s07"
    assert len(view.selected_file_ids) == 19
    assert view.end_time == 19_000
    assert view.avg_time_between_photos == 1.0

    store.set_setting("seriesMinGroupSize", 25)
    assert run_series_analysis(store) == []


def test_delete_selected_forgets_photos(store, make_photo) -> None:
    store.add_or_update_photos([make_photo("a"), make_photo("b"), make_photo("c")])
    assert delete_selected(store, ["a", "b", "a"]) == 2
    assert [p.file_id for p in store.get_all_photos()] == ["c"]
