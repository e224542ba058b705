"""
ResolvedLocation store: one row per external_id, shared across requests and users.
Inserts use INSERT .. ON CONFLICT (external_id) DO NOTHING followed by a read, so two
concurrent first-time resolutions of the same place converge on a single row.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, Float, MetaData, String, Table, Text, create_engine, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from tools.base import NewLocation, StoredLocation

logger = logging.getLogger(__name__)

metadata = MetaData()

locations = Table(
    "locations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("external_id", Text, nullable=False, unique=True),
    Column("name", Text, nullable=False),
    Column("region", Text),
    Column("country", Text, nullable=False),
    Column("latitude", Float, nullable=False),
    Column("longitude", Float, nullable=False),
    Column("timezone", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)),
)

_DIALECT_INSERT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def estimate_timezone(longitude: float) -> str:
    """Rough US timezone from longitude; used when the forecast provider gives none."""
    if longitude > -82:
        return "America/New_York"
    if longitude > -90:
        return "America/Chicago"
    if longitude > -105:
        return "America/Denver"
    return "America/Los_Angeles"


def _to_stored(row) -> StoredLocation:
    return StoredLocation(
        id=row.id,
        external_id=row.external_id,
        name=row.name,
        region=row.region or "",
        country=row.country,
        latitude=row.latitude,
        longitude=row.longitude,
        timezone=row.timezone,
    )


class LocationStore:
    def __init__(self, engine: Engine):
        self._engine = engine
        try:
            self._insert = _DIALECT_INSERT[engine.dialect.name]
        except KeyError:
            raise ValueError(f"Unsupported database dialect for location upsert: {engine.dialect.name}") from None

    @classmethod
    def from_url(cls, url: str) -> "LocationStore":
        parsed = make_url(url)
        if parsed.get_backend_name() != "sqlite":
            return cls(create_engine(url))
        kwargs = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            # An in-memory database lives in one connection; every thread must share it.
            kwargs["poolclass"] = StaticPool
        return cls(create_engine(url, **kwargs))

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        metadata.create_all(self._engine)

    def get_by_external_id(self, external_id: str) -> Optional[StoredLocation]:
        with self._engine.connect() as conn:
            row = conn.execute(select(locations).where(locations.c.external_id == external_id)).first()
        return _to_stored(row) if row else None

    def upsert(self, location: NewLocation) -> StoredLocation:
        """Insert-or-return-existing keyed by external_id. Never check-then-insert."""
        existing = self.get_by_external_id(location.external_id)
        if existing is not None:
            return existing

        stmt = (
            self._insert(locations)
            .values(
                id=str(uuid.uuid4()),
                external_id=location.external_id,
                name=location.name,
                region=location.region,
                country=location.country,
                latitude=location.latitude,
                longitude=location.longitude,
                timezone=location.timezone,
                created_at=datetime.now(timezone.utc),
            )
            .on_conflict_do_nothing(index_elements=["external_id"])
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
            row = conn.execute(
                select(locations).where(locations.c.external_id == location.external_id)
            ).one()
        if result.rowcount == 0:
            logger.debug("Location %s inserted concurrently; reusing id %s", location.external_id, row.id)
        return _to_stored(row)
