"""
Backing store built on SQLAlchemy Core with typed columns.

Provides the read queries the access engine relies on (subscription fetch,
live counts, ordered id windows, document counts) plus the plain CRUD the
HTTP layer needs. Every SQLAlchemy failure is re-raised as StoreReadError or
StoreWriteError so callers never see driver exceptions.
"""
import os
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import (
    Column, DateTime, Float, MetaData, String, Table, create_engine, func, select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool, StaticPool

from rentals.errors import StoreReadError, StoreWriteError
from rentals.models import (
    FinancialTransaction, Property, ResourceKind, Subscription, Tenant,
    TenantDocument, utcnow,
)
from rentals.subscription import as_utc

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    "sqlite:///./rentals.db"
)

metadata = MetaData()

subscriptions_table = Table(
    "subscriptions", metadata,
    Column("owner_id", String(36), primary_key=True),
    Column("plan", String(32), nullable=True),
    Column("status", String(32), nullable=True),
    Column("started_at", DateTime(timezone=True), nullable=True),
    Column("expires_at", DateTime(timezone=True), nullable=True),
    Column("trial_ends_at", DateTime(timezone=True), nullable=True),
    Column("grace_period_ends_at", DateTime(timezone=True), nullable=True),
    Column("external_transaction_id", String(255), nullable=True),
)

properties_table = Table(
    "properties", metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(36), index=True, nullable=False),
    Column("name", String(255), nullable=False),
    Column("address", String(500), nullable=False),
    Column("created_at", DateTime(timezone=True), index=True, nullable=False),
    Column("archived_at", DateTime(timezone=True), nullable=True),
)

tenants_table = Table(
    "tenants", metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(36), index=True, nullable=False),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=True),
    Column("phone", String(64), nullable=True),
    Column("created_at", DateTime(timezone=True), index=True, nullable=False),
)

tenant_documents_table = Table(
    "tenant_documents", metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(36), index=True, nullable=False),
    Column("tenant_id", String(36), index=True, nullable=False),
    Column("file_name", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

financial_transactions_table = Table(
    "financial_transactions", metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(36), index=True, nullable=False),
    Column("property_id", String(36), index=True, nullable=True),
    Column("amount", Float, nullable=False),
    Column("description", String(500), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

RESOURCE_TABLES = {
    ResourceKind.PROPERTY: properties_table,
    ResourceKind.TENANT: tenants_table,
}


def _create_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,  # Single connection, also keeps in-memory DBs alive
        )
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def _live_filter(table: Table, owner_id: str):
    clause = table.c.owner_id == owner_id
    # Only properties can be archived
    if "archived_at" in table.c:
        clause = clause & table.c.archived_at.is_(None)
    return clause


def _row_to_subscription(row) -> Subscription:
    return Subscription(
        owner_id=row.owner_id,
        plan=row.plan,
        status=row.status,
        started_at=as_utc(row.started_at),
        expires_at=as_utc(row.expires_at),
        trial_ends_at=as_utc(row.trial_ends_at),
        grace_period_ends_at=as_utc(row.grace_period_ends_at),
        external_transaction_id=row.external_transaction_id,
    )


def _row_to_property(row) -> Property:
    return Property(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        address=row.address,
        created_at=as_utc(row.created_at),
        archived_at=as_utc(row.archived_at),
    )


def _row_to_tenant(row) -> Tenant:
    return Tenant(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        created_at=as_utc(row.created_at),
    )


class Database:
    """Store operations using typed columns."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or DATABASE_URL
        self.engine = _create_engine(self.database_url)
        metadata.create_all(self.engine)
        logger.info(f"[Database] Engine initialized for {self.engine.url.get_backend_name()}")

    @contextmanager
    def _reading(self, what: str) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.error(f"[Database] Read failed ({what}): {e}")
            raise StoreReadError(f"{what}: {e}") from e

    @contextmanager
    def _writing(self, what: str) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.error(f"[Database] Write failed ({what}): {e}")
            raise StoreWriteError(f"{what}: {e}") from e

    # ==================== ACCESS ENGINE QUERIES ====================

    def get_subscription(self, owner_id: str) -> Optional[Subscription]:
        with self._reading("get_subscription") as conn:
            row = conn.execute(
                subscriptions_table.select().where(subscriptions_table.c.owner_id == owner_id)
            ).fetchone()
        return _row_to_subscription(row) if row else None

    def count_live_resources(self, owner_id: str, kind: ResourceKind) -> int:
        table = RESOURCE_TABLES[kind]
        with self._reading(f"count_live_resources[{kind.value}]") as conn:
            result = conn.execute(
                select(func.count()).select_from(table).where(_live_filter(table, owner_id))
            ).scalar()
        return result or 0

    def list_resource_ids_ordered_by_creation_descending(
        self, owner_id: str, kind: ResourceKind, offset: int, limit_count: int
    ) -> list[str]:
        """Ids of live resources, newest first, windowed to [offset, offset + limit_count)."""
        if limit_count <= 0:
            return []
        table = RESOURCE_TABLES[kind]
        query = (
            select(table.c.id)
            .where(_live_filter(table, owner_id))
            .order_by(table.c.created_at.desc(), table.c.id.desc())
            .offset(offset)
            .limit(limit_count)
        )
        with self._reading(f"list_resource_ids[{kind.value}]") as conn:
            rows = conn.execute(query).fetchall()
        return [r.id for r in rows]

    def count_documents(self, owner_id: str) -> int:
        with self._reading("count_documents") as conn:
            result = conn.execute(
                select(func.count())
                .select_from(tenant_documents_table)
                .where(tenant_documents_table.c.owner_id == owner_id)
            ).scalar()
        return result or 0

    # ==================== SUBSCRIPTION OPERATIONS ====================

    def save_subscription(self, subscription: Subscription) -> Subscription:
        values = dict(
            plan=subscription.plan,
            status=subscription.status,
            started_at=as_utc(subscription.started_at),
            expires_at=as_utc(subscription.expires_at),
            trial_ends_at=as_utc(subscription.trial_ends_at),
            grace_period_ends_at=as_utc(subscription.grace_period_ends_at),
            external_transaction_id=subscription.external_transaction_id,
        )
        with self._writing("save_subscription") as conn:
            existing = conn.execute(
                subscriptions_table.select().where(
                    subscriptions_table.c.owner_id == subscription.owner_id
                )
            ).fetchone()
            if existing:
                conn.execute(
                    subscriptions_table.update()
                    .where(subscriptions_table.c.owner_id == subscription.owner_id)
                    .values(**values)
                )
            else:
                conn.execute(
                    subscriptions_table.insert().values(owner_id=subscription.owner_id, **values)
                )
        return subscription

    # ==================== PROPERTY OPERATIONS ====================

    def save_property(self, prop: Property) -> Property:
        with self._writing("save_property") as conn:
            conn.execute(
                properties_table.insert().values(
                    id=prop.id,
                    owner_id=prop.owner_id,
                    name=prop.name,
                    address=prop.address,
                    created_at=as_utc(prop.created_at),
                    archived_at=as_utc(prop.archived_at),
                )
            )
        return prop

    def get_property(self, property_id: str) -> Optional[Property]:
        with self._reading("get_property") as conn:
            row = conn.execute(
                properties_table.select().where(properties_table.c.id == property_id)
            ).fetchone()
        return _row_to_property(row) if row else None

    def list_properties(self, owner_id: str) -> list[Property]:
        """Live properties, newest first."""
        with self._reading("list_properties") as conn:
            rows = conn.execute(
                properties_table.select()
                .where(_live_filter(properties_table, owner_id))
                .order_by(properties_table.c.created_at.desc(), properties_table.c.id.desc())
            ).fetchall()
        return [_row_to_property(r) for r in rows]

    def archive_property(self, property_id: str, when: Optional[datetime] = None) -> bool:
        with self._writing("archive_property") as conn:
            result = conn.execute(
                properties_table.update()
                .where(properties_table.c.id == property_id)
                .values(archived_at=as_utc(when or utcnow()))
            )
            return result.rowcount > 0

    def delete_property(self, property_id: str) -> bool:
        with self._writing("delete_property") as conn:
            result = conn.execute(
                properties_table.delete().where(properties_table.c.id == property_id)
            )
            return result.rowcount > 0

    # ==================== TENANT OPERATIONS ====================

    def save_tenant(self, tenant: Tenant) -> Tenant:
        with self._writing("save_tenant") as conn:
            conn.execute(
                tenants_table.insert().values(
                    id=tenant.id,
                    owner_id=tenant.owner_id,
                    name=tenant.name,
                    email=tenant.email,
                    phone=tenant.phone,
                    created_at=as_utc(tenant.created_at),
                )
            )
        return tenant

    def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        with self._reading("get_tenant") as conn:
            row = conn.execute(
                tenants_table.select().where(tenants_table.c.id == tenant_id)
            ).fetchone()
        return _row_to_tenant(row) if row else None

    def list_tenants(self, owner_id: str) -> list[Tenant]:
        """Tenants, newest first."""
        with self._reading("list_tenants") as conn:
            rows = conn.execute(
                tenants_table.select()
                .where(tenants_table.c.owner_id == owner_id)
                .order_by(tenants_table.c.created_at.desc(), tenants_table.c.id.desc())
            ).fetchall()
        return [_row_to_tenant(r) for r in rows]

    def delete_tenant(self, tenant_id: str) -> bool:
        with self._writing("delete_tenant") as conn:
            conn.execute(
                tenant_documents_table.delete().where(tenant_documents_table.c.tenant_id == tenant_id)
            )
            result = conn.execute(
                tenants_table.delete().where(tenants_table.c.id == tenant_id)
            )
            return result.rowcount > 0

    # ==================== DOCUMENT / TRANSACTION OPERATIONS ====================

    def save_document(self, document: TenantDocument) -> TenantDocument:
        with self._writing("save_document") as conn:
            conn.execute(
                tenant_documents_table.insert().values(
                    id=document.id,
                    owner_id=document.owner_id,
                    tenant_id=document.tenant_id,
                    file_name=document.file_name,
                    created_at=as_utc(document.created_at),
                )
            )
        return document

    def save_transaction(self, transaction: FinancialTransaction) -> FinancialTransaction:
        with self._writing("save_transaction") as conn:
            conn.execute(
                financial_transactions_table.insert().values(
                    id=transaction.id,
                    owner_id=transaction.owner_id,
                    property_id=transaction.property_id,
                    amount=transaction.amount,
                    description=transaction.description,
                    created_at=as_utc(transaction.created_at),
                )
            )
        return transaction


db = Database()
