"""
db/models/account_product.py

Account product catalogue entry (savings, current account, deposit, ...).
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class AccountProduct(Base, TimestampMixin):
    __tablename__ = "account_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="Product code as printed in performance reports",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<AccountProduct id={self.id} code={self.code!r}>"
