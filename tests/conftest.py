"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database with the full schema and a
small seeded portfolio (one branch, two bankers, one client, one account).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401
from db.base import Base
from db.models import Account, AccountProduct, Branch, Client, UniversalBanker


@dataclass(frozen=True)
class Portfolio:
    branch_id: int
    banker_id: int
    other_banker_id: int
    client_id: int
    account_id: int


@pytest.fixture()
def engine() -> Iterator[Engine]:
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def portfolio(session_factory: sessionmaker[Session]) -> Portfolio:
    with session_factory() as db:
        branch = Branch(code="KCK", name="KC Kaliasin")
        product = AccountProduct(code="TAB", name="Tabungan")
        banker = UniversalBanker(nip="RO1", name="Rina Oktaviani", position="Senior UB", branch=branch)
        other = UniversalBanker(nip="RO2", name="Rudi Orlando")
        client = Client(cif="CIF001", name="PT Sinar Jaya")
        db.add_all([branch, product, banker, other, client])
        db.flush()

        account = Account(
            client_id=client.id,
            account_product_id=product.id,
            universal_banker_id=banker.id,
            account_number="AB123",
            current_balance=Decimal("1000.0000"),
            available_balance=Decimal("900.0000"),
        )
        db.add(account)
        db.commit()

        return Portfolio(
            branch_id=branch.id,
            banker_id=banker.id,
            other_banker_id=other.id,
            client_id=client.id,
            account_id=account.id,
        )
