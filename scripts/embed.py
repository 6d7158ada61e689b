#!/usr/bin/env python
"""
Generate embeddings for every stored photo that does not have one yet.

Usage:
  python scripts/embed.py
  EMBEDDING_SERVER_URL=http://localhost:3001 python scripts/embed.py --workers 2
  EMBEDDING_BACKEND=hash python scripts/embed.py
"""
from __future__ import annotations

import argparse
import asyncio
import logging

from photo_prune.core.env import configure_logging, database_url, load_dotenv_if_present
from photo_prune.embedding import EmbeddingProcessor, model_from_env
from photo_prune.store import PhotoStore, init_db, session_factory

logger = logging.getLogger("embed")


async def run(workers: int | None, init_timeout: float | None) -> None:
    engine = init_db(database_url())
    store = PhotoStore(session_factory(engine))
    processor = EmbeddingProcessor(
        store,
        model_from_env,
        worker_count=workers,
        init_timeout=init_timeout,
        on_status=lambda message, done, total: print(f"[{done}/{total}] {message}"),
    )
    try:
        await processor.start()
        await processor.wait()
    finally:
        processor.terminate_workers()
    print(f"Done: {processor.processed_count} processed, {processor.error_count} errors")


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate missing photo embeddings.")
    parser.add_argument("--workers", type=int, default=None, help="Worker pool size (default: setting or 4)")
    parser.add_argument(
        "--init-timeout", type=float, default=None, help="Seconds to wait for workers to load models"
    )
    args = parser.parse_args()

    load_dotenv_if_present()
    configure_logging()
    asyncio.run(run(args.workers, args.init_timeout))


if __name__ == "__main__":
    main()
