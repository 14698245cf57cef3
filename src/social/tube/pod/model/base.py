from datetime import datetime, timezone
from typing import Annotated, Optional

from sqlalchemy import DateTime, String, event, orm
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import mapped_column

str64 = Annotated[str, 64]
str256 = Annotated[str, 256]
str512 = Annotated[str, 512]
guidpk = Annotated[str, mapped_column(String(64), primary_key=True)]
timestamp = Annotated[datetime, mapped_column(DateTime(timezone=True), nullable=False)]


class Base(orm.DeclarativeBase):
    type_annotation_map = {
        str64: String(64),
        str256: String(256),
        str512: String(512),
        guidpk: String(64),
    }


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to datetimes read back from dialects that drop tzinfo (SQLite)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def isoformat(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_database_engine(dsn: str, **kwargs) -> AsyncEngine:
    """Create the async engine. SQLite connections get foreign key enforcement."""
    engine = create_async_engine(dsn, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine
