"""
db/models/universal_banker.py

Universal banker (relationship officer) model. Spreadsheet rows reference a
banker by NIP through the `pn_relationship_officer` column.
"""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.account import Account
    from db.models.banker_daily_balance import BankerDailyBalance
    from db.models.branch import Branch


class UniversalBanker(Base, TimestampMixin):
    """
    Bank staff member who manages a portfolio of client accounts.

    nip is the natural key used by the import pipeline; it is unique and
    matched exactly after the spreadsheet value has been normalized.
    """

    __tablename__ = "universal_bankers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    nip: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Employee number used as banker code in performance reports",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    position: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Job title shown in exported reports",
    )

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    branch_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("branches.id", ondelete="SET NULL"),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    branch: Mapped["Branch | None"] = relationship(
        "Branch",
        back_populates="universal_bankers",
    )

    accounts: Mapped[list["Account"]] = relationship(
        "Account",
        back_populates="universal_banker",
    )

    daily_balances: Mapped[list["BankerDailyBalance"]] = relationship(
        "BankerDailyBalance",
        back_populates="universal_banker",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_universal_bankers_branch_id", "branch_id"),
    )

    def __repr__(self) -> str:
        return f"<UniversalBanker id={self.id} nip={self.nip!r} name={self.name!r}>"
