"""
SQL Stores
==========
SQLAlchemy-backed credential and identity stores (PostgreSQL or SQLite).
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import DateTime, String, Uuid, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column
import structlog

from ..accounts.models import Account
from ..clock import Clock, SYSTEM_CLOCK
from ..database import Base, Database
from ..errors import (
    AccountAlreadyExists,
    AccountNotFound,
    CredentialNotFound,
    StoreError,
)
from ..identity import mask_phone
from ..otp.models import OneTimeCredential
from .base import CredentialStore, IdentityStore

logger = structlog.get_logger(__name__)


class AccountRow(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    phone_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CredentialRow(Base):
    __tablename__ = "otp_credentials"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    phone_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    otp_code: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        identity=row.phone_number,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _to_credential(row: CredentialRow) -> OneTimeCredential:
    return OneTimeCredential(
        identity=row.phone_number,
        code=row.otp_code,
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
    )


class SqlCredentialStore(CredentialStore):
    """
    Credential store backed by the ``otp_credentials`` table.

    ``consume`` reads the row and then deletes it by primary key. Every
    ``put`` assigns a fresh primary key, so a delete that matches no row
    means another caller consumed or replaced the credential first.
    """

    def __init__(self, database: Database, clock: Optional[Clock] = None):
        self.db = database
        self.clock = clock or SYSTEM_CLOCK

    async def put(self, credential: OneTimeCredential) -> None:
        values = {
            "id": uuid.uuid4(),
            "phone_number": credential.identity,
            "otp_code": credential.code,
            "created_at": credential.created_at,
            "expires_at": credential.expires_at,
        }
        try:
            async with self.db.session() as session:
                dialect = session.bind.dialect.name
                if dialect in ("postgresql", "sqlite"):
                    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                    stmt = insert(CredentialRow).values(**values)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[CredentialRow.phone_number],
                        set_={
                            "id": stmt.excluded.id,
                            "otp_code": stmt.excluded.otp_code,
                            "created_at": stmt.excluded.created_at,
                            "expires_at": stmt.excluded.expires_at,
                        },
                    )
                    await session.execute(stmt)
                else:
                    await session.execute(
                        delete(CredentialRow).where(CredentialRow.phone_number == credential.identity)
                    )
                    session.add(CredentialRow(**values))
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="credential.put") from e

    async def get(self, identity: str) -> OneTimeCredential:
        try:
            async with self.db.session() as session:
                row = await session.scalar(
                    select(CredentialRow).where(CredentialRow.phone_number == identity)
                )
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="credential.get") from e

        if row is None:
            raise CredentialNotFound(identity)
        credential = _to_credential(row)
        if credential.is_expired(self.clock.now()):
            raise CredentialNotFound(identity)
        return credential

    async def consume(self, identity: str) -> OneTimeCredential:
        try:
            async with self.db.session() as session:
                row = await session.scalar(
                    select(CredentialRow).where(CredentialRow.phone_number == identity)
                )
                if row is None:
                    raise CredentialNotFound(identity)
                credential = _to_credential(row)

                result = await session.execute(
                    delete(CredentialRow).where(CredentialRow.id == row.id)
                )
                if result.rowcount == 0:
                    raise CredentialNotFound(identity)
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="credential.consume") from e

        if credential.is_expired(self.clock.now()):
            raise CredentialNotFound(identity)
        return credential

    async def delete(self, identity: str) -> None:
        try:
            async with self.db.session() as session:
                await session.execute(
                    delete(CredentialRow).where(CredentialRow.phone_number == identity)
                )
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="credential.delete") from e

    async def purge_expired(self) -> int:
        try:
            async with self.db.session() as session:
                result = await session.execute(
                    delete(CredentialRow).where(CredentialRow.expires_at <= self.clock.now())
                )
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="credential.purge") from e
        return result.rowcount or 0


class SqlIdentityStore(IdentityStore):
    """Account store backed by the ``accounts`` table."""

    def __init__(self, database: Database, clock: Optional[Clock] = None):
        self.db = database
        self.clock = clock or SYSTEM_CLOCK

    async def find_by_identity(self, identity: str) -> Account:
        try:
            async with self.db.session() as session:
                row = await session.scalar(
                    select(AccountRow).where(AccountRow.phone_number == identity)
                )
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="account.find") from e

        if row is None:
            raise AccountNotFound(identity)
        return _to_account(row)

    async def get_by_id(self, account_id: uuid.UUID) -> Account:
        try:
            async with self.db.session() as session:
                row = await session.get(AccountRow, account_id)
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="account.get") from e

        if row is None:
            raise AccountNotFound(str(account_id))
        return _to_account(row)

    async def create(self, identity: str) -> Account:
        now = self.clock.now()
        row = AccountRow(
            id=uuid.uuid4(),
            phone_number=identity,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db.session() as session:
                session.add(row)
        except IntegrityError as e:
            raise AccountAlreadyExists(identity) from e
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="account.create") from e

        logger.info("Account created", account_id=str(row.id), identity=mask_phone(identity))
        return Account(id=row.id, identity=identity, created_at=now, updated_at=now)

    async def list(
        self,
        limit: int,
        offset: int,
        search: Optional[str] = None,
    ) -> Tuple[List[Account], int]:
        count_stmt = select(func.count()).select_from(AccountRow)
        list_stmt = select(AccountRow)
        if search:
            condition = AccountRow.phone_number.contains(search, autoescape=True)
            count_stmt = count_stmt.where(condition)
            list_stmt = list_stmt.where(condition)
        list_stmt = (
            list_stmt
            .order_by(AccountRow.created_at.desc(), AccountRow.id.desc())
            .limit(limit)
            .offset(offset)
        )

        try:
            async with self.db.session() as session:
                total = await session.scalar(count_stmt)
                rows = (await session.scalars(list_stmt)).all()
        except SQLAlchemyError as e:
            raise StoreError(str(e), operation="account.list") from e

        return [_to_account(row) for row in rows], total or 0
