"""
db/models/account.py

Account model: one client account managed by a universal banker.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, Money, TimestampMixin

if TYPE_CHECKING:
    from db.models.account_product import AccountProduct
    from db.models.account_transaction import AccountTransaction
    from db.models.client import Client
    from db.models.universal_banker import UniversalBanker


class AccountStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"


class Account(Base, TimestampMixin):
    """
    Client account with its latest reconciled balances.

    account_number is stored in normalized form (alphanumeric only) so it
    can be matched exactly against normalized spreadsheet values.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_product_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("account_products.id", ondelete="SET NULL"),
        nullable=True,
    )

    universal_banker_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("universal_bankers.id", ondelete="SET NULL"),
        nullable=True,
        comment="Banker currently managing the account",
    )

    account_number: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    current_balance: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
    )

    available_balance: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="IDR",
        server_default="IDR",
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AccountStatus.ACTIVE,
        comment="active, inactive, blocked",
    )

    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_transaction_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    client: Mapped["Client"] = relationship("Client", back_populates="accounts")

    account_product: Mapped["AccountProduct | None"] = relationship("AccountProduct")

    universal_banker: Mapped["UniversalBanker | None"] = relationship(
        "UniversalBanker",
        back_populates="accounts",
    )

    transactions: Mapped[list["AccountTransaction"]] = relationship(
        "AccountTransaction",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_accounts_client_id", "client_id"),
        Index("ix_accounts_universal_banker_id", "universal_banker_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Account id={self.id} account_number={self.account_number!r} "
            f"current_balance={self.current_balance}>"
        )
