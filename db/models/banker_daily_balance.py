"""
db/models/banker_daily_balance.py

Per-banker, per-day total of managed balances. Feeds the performance export.
"""

import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Index, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, Money, TimestampMixin

if TYPE_CHECKING:
    from db.models.universal_banker import UniversalBanker


class BankerDailyBalance(Base, TimestampMixin):
    __tablename__ = "universal_banker_daily_balances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    universal_banker_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("universal_bankers.id", ondelete="CASCADE"),
        nullable=False,
    )

    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    total_balance: Mapped[Decimal] = mapped_column(Money, nullable=False)

    daily_change: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
    )

    universal_banker: Mapped["UniversalBanker"] = relationship(
        "UniversalBanker",
        back_populates="daily_balances",
    )

    __table_args__ = (
        UniqueConstraint(
            "universal_banker_id",
            "date",
            name="uq_universal_banker_daily_balances_banker_date",
        ),
        Index("ix_universal_banker_daily_balances_date", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<BankerDailyBalance banker_id={self.universal_banker_id} "
            f"date={self.date} total_balance={self.total_balance}>"
        )
