#!/usr/bin/env python
"""
Print similar-photo groups or burst series found in the local store.

Usage:
  python scripts/analyze.py similar --threshold 0.93
  python scripts/analyze.py series --sort density
  python scripts/analyze.py export backups/embeddings.json
  python scripts/analyze.py import backups/embeddings.json --overwrite
"""
from __future__ import annotations

import argparse
from datetime import datetime, timezone

from photo_prune.api.bridge import run_series_analysis, run_similarity_analysis
from photo_prune.core.env import configure_logging, database_url, load_dotenv_if_present
from photo_prune.core.settings import load_settings
from photo_prune.store import PhotoStore, export_embeddings, import_embeddings, init_db, session_factory


def _fmt(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def main() -> None:
    parser = argparse.ArgumentParser(description="Analyze the photo store.")
    sub = parser.add_subparsers(dest="command", required=True)
    similar = sub.add_parser("similar", help="Group visually similar photos")
    similar.add_argument("--threshold", type=float, default=None)
    similar.add_argument("--gap-hours", type=float, default=None)
    series = sub.add_parser("series", help="Find rapid-fire bursts")
    series.add_argument("--sort", default=None, choices=["group-size", "date-desc", "date-asc", "density"])
    export = sub.add_parser("export", help="Write embeddings to a JSON backup")
    export.add_argument("path")
    restore = sub.add_parser("import", help="Load embeddings from a JSON backup")
    restore.add_argument("path")
    restore.add_argument("--overwrite", action="store_true")
    args = parser.parse_args()

    load_dotenv_if_present()
    configure_logging()
    engine = init_db(database_url())
    store = PhotoStore(session_factory(engine))

    if args.command == "export":
        metadata = export_embeddings(store, args.path)
        print(f"Exported {metadata['embedding_count']} embeddings to {args.path}")
        return
    if args.command == "import":
        result = import_embeddings(store, args.path, "overwrite" if args.overwrite else "skip")
        print(f"Imported {result.imported}, updated {result.updated}, skipped {result.skipped}")
        return

    settings = load_settings(store)
    if args.command == "similar":
        updates = {}
        if args.threshold is not None:
            updates["similarity_threshold"] = args.threshold
        if args.gap_hours is not None:
            updates["time_span_hours"] = args.gap_hours
        settings = settings.model_copy(update=updates)
        views = run_similarity_analysis(store, settings)
    else:
        views = run_series_analysis(store, settings, sort_method=args.sort)

    if not views:
        print("No groups found.")
        return
    for view in views:
        names = ", ".join(photo.name or photo.file_id for photo in view.photos[:5])
        more = f" (+{view.photo_count - 5} more)" if view.photo_count > 5 else ""
        print(f"{_fmt(view.timestamp)}  {view.photo_count} photos, keep {view.best_file_id}: {names}{more}")


if __name__ == "__main__":
    main()
