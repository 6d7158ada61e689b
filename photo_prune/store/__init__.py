"""Local durable store for photo records and settings."""

from .backup import BackupError, ImportResult, export_embeddings, import_embeddings
from .photo_store import PhotoNotFoundError, PhotoStore
from .schema import (
    Base,
    PhotoRow,
    SettingRow,
    create_engine_from_url,
    init_db,
    session_factory,
)

__all__ = [
    "Base",
    "BackupError",
    "ImportResult",
    "PhotoNotFoundError",
    "PhotoRow",
    "PhotoStore",
    "SettingRow",
    "create_engine_from_url",
    "export_embeddings",
    "import_embeddings",
    "init_db",
    "session_factory",
]
