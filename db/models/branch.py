"""
db/models/branch.py

Branch office that universal bankers are assigned to.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.universal_banker import UniversalBanker


class Branch(Base, TimestampMixin):
    __tablename__ = "branches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    universal_bankers: Mapped[list["UniversalBanker"]] = relationship(
        "UniversalBanker",
        back_populates="branch",
    )

    def __repr__(self) -> str:
        return f"<Branch id={self.id} code={self.code!r} name={self.name!r}>"
