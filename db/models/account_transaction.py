"""
db/models/account_transaction.py

Balance-history record written when an approved import changes an account.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, Money, TimestampMixin

if TYPE_CHECKING:
    from db.models.account import Account


class AccountTransaction(Base, TimestampMixin):
    """
    One reconciled balance movement for an account on a report date.

    (account_id, transaction_date) is the idempotency key: a report date
    holds at most one history row per account, so re-submitting the same
    import rewrites that row instead of appending a duplicate.
    """

    __tablename__ = "account_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="new_balance - previous_balance",
    )

    previous_balance: Mapped[Decimal] = mapped_column(Money, nullable=False)

    new_balance: Mapped[Decimal] = mapped_column(Money, nullable=False)

    available_balance: Mapped[Decimal] = mapped_column(Money, nullable=False)

    account: Mapped["Account"] = relationship("Account", back_populates="transactions")

    __table_args__ = (
        UniqueConstraint(
            "account_id",
            "transaction_date",
            name="uq_account_transactions_account_date",
        ),
    )
