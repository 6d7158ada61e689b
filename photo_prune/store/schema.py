from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Float,
    MetaData,
    String,
    create_engine,
    event,
    func,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class PhotoRow(Base):
    __tablename__ = "photos"

    file_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    path: Mapped[str] = mapped_column(String, nullable=False, default="")
    photo_taken_ts: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    last_modified_ts: Mapped[Optional[int]] = mapped_column(BigInteger)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String)
    embedding: Mapped[Optional[list[float]]] = mapped_column(JSON)
    embedding_status: Mapped[str] = mapped_column(
        String, nullable=False, default="new", index=True
    )
    quality_score: Mapped[Optional[float]] = mapped_column(Float)
    sharpness: Mapped[Optional[float]] = mapped_column(Float)
    exposure: Mapped[Optional[dict]] = mapped_column(JSON)
    face: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class SettingRow(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[Optional[Any]] = mapped_column(JSON)


def _enable_sqlite_wal(dbapi_connection: object, _: object) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_engine_from_url(database_url: str) -> Engine:
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        # One shared connection so every session sees the same in-memory database.
        return create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    engine = create_engine(database_url, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_wal)
    return engine


def init_db(database_url: str | Engine) -> Engine:
    engine = (
        database_url if isinstance(database_url, Engine) else create_engine_from_url(database_url)
    )
    Base.metadata.create_all(engine)
    return engine


def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session, future=True)
