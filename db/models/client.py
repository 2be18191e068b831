"""
db/models/client.py

Client model: bank customer identified by CIF number.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.account import Account


class Client(Base, TimestampMixin):
    """
    Represents one bank customer.

    cif (Customer Information File number) is the natural key the import
    pipeline resolves spreadsheet rows against.
    """

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    cif: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Client CIF number",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    joined_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Client id={self.id} cif={self.cif!r} name={self.name!r}>"
