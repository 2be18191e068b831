"""
app/repositories/entity_resolver.py

Natural-key lookups for bankers, clients and accounts used by the import
pipeline. All lookups are exact-match and read-only; "not found" is None,
while store failures (SQLAlchemyError) propagate to the caller.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.reconciliation import AccountRef, BankerRef, ClientRef
from db.models.account import Account
from db.models.client import Client
from db.models.universal_banker import UniversalBanker


class EntityResolver(Protocol):
    """
    Lookup contract consumed by the importer.
    """

    def find_banker(self, code: str) -> BankerRef | None:
        ...

    def find_client(self, cif: str) -> ClientRef | None:
        ...

    def find_account(self, account_number: str) -> AccountRef | None:
        ...


class SqlEntityResolver:
    """
    Resolver backed by the relational store.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_banker(self, code: str) -> BankerRef | None:
        stmt = select(UniversalBanker.id, UniversalBanker.nip, UniversalBanker.name).where(
            UniversalBanker.nip == code
        )
        row = self._session.execute(stmt).first()
        if row is None:
            return None
        return BankerRef(id=row.id, code=row.nip, name=row.name)

    def find_client(self, cif: str) -> ClientRef | None:
        stmt = select(Client.id, Client.cif, Client.name).where(Client.cif == cif)
        row = self._session.execute(stmt).first()
        if row is None:
            return None
        return ClientRef(id=row.id, cif=row.cif, name=row.name)

    def find_account(self, account_number: str) -> AccountRef | None:
        stmt = select(
            Account.id,
            Account.account_number,
            Account.client_id,
            Account.universal_banker_id,
            Account.current_balance,
            Account.available_balance,
        ).where(Account.account_number == account_number)
        row = self._session.execute(stmt).first()
        if row is None:
            return None
        return AccountRef(
            id=row.id,
            account_number=row.account_number,
            client_id=row.client_id,
            universal_banker_id=row.universal_banker_id,
            current_balance=row.current_balance,
            available_balance=row.available_balance,
        )


_MISSING = object()


class MemoizingEntityResolver:
    """
    Wraps another resolver and remembers hits and misses for one run.

    Not thread-safe; create one per import run.
    """

    def __init__(self, inner: EntityResolver) -> None:
        self._inner = inner
        self._bankers: dict[str, BankerRef | None] = {}
        self._clients: dict[str, ClientRef | None] = {}
        self._accounts: dict[str, AccountRef | None] = {}

    def find_banker(self, code: str) -> BankerRef | None:
        cached = self._bankers.get(code, _MISSING)
        if cached is _MISSING:
            cached = self._bankers[code] = self._inner.find_banker(code)
        return cached  # type: ignore[return-value]

    def find_client(self, cif: str) -> ClientRef | None:
        cached = self._clients.get(cif, _MISSING)
        if cached is _MISSING:
            cached = self._clients[cif] = self._inner.find_client(cif)
        return cached  # type: ignore[return-value]

    def find_account(self, account_number: str) -> AccountRef | None:
        cached = self._accounts.get(account_number, _MISSING)
        if cached is _MISSING:
            cached = self._accounts[account_number] = self._inner.find_account(account_number)
        return cached  # type: ignore[return-value]
