"""
Module: wallet_kernel.models.user
Responsibility: ORM persistence for wallet holders and their preferred
    (settlement) currency.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - email is unique (uq_user_email).
    - preferred_currency_id is NOT NULL: every user has exactly one preferred
      currency, which is the settlement currency of every transfer the user
      receives.
    - The user row is the first lock a transfer takes.  Changing the
      preferred currency goes through ReferenceDataService, which takes the
      same lock, so a transfer never sees the preference change mid-flight.

Non-goals:
    - credential is opaque material; hashing and verification belong to the
      authentication layer, not to the ledger.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wallet_kernel.db.base import TimestampedBase, UUIDString


class WalletUser(TimestampedBase):
    """A wallet holder."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        Index("idx_user_preferred_currency", "preferred_currency_id"),
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Unique contact identifier
    email: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )

    credential: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Settlement currency for incoming transfers
    preferred_currency_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("currencies.id"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<WalletUser {self.email}>"
