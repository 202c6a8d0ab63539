"""
Declarative base for the wallet ORM models.

Every table gets a uuid4 primary key stored as a 36-character string, so
the same schema runs on PostgreSQL and SQLite.  Ids always round-trip in
canonical lowercase form; transfers order their row locks by that string,
which only works if every layer agrees on it.

Layering: imported by models/ only (plus db/engine.py for metadata).  Must
not import from models/, services/, selectors/ or domain/.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from wallet_kernel.db.types import ExactDecimal


class UUIDString(TypeDecorator):
    """UUID column stored as VARCHAR(36) in canonical form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # Accepts UUID or str; malformed ids fail here rather than never matching
        return str(value if isinstance(value, UUID) else UUID(str(value)))

    def process_result_value(self, value, dialect):
        return UUID(value) if value is not None else None


class Base(DeclarativeBase):
    """
    Root of all models.

    Annotation defaults: ``Decimal`` -> ExactDecimal(38, 9),
    ``datetime`` -> timezone-aware DateTime, ``UUID`` -> UUIDString.
    Money and rate columns override the decimal type explicitly.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TimestampedBase(Base):
    """Adds server-side ``created_at`` and ``updated_at``."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Refreshed by the ORM on every UPDATE
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
