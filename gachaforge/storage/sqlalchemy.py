"""SQLAlchemy storage backend for gachaforge."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, nullcontext
from datetime import datetime, timezone
from typing import AsyncIterator, Sequence

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    UniqueConstraint,
    delete,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .base import (
    AuditStore,
    BannerRecord,
    BannerStore,
    InventoryRow,
    ItemRecord,
    LedgerStore,
    LedgerTotals,
    LedgerTransaction,
    OwnershipRecord,
    TradeRecord,
    TradeStatus,
    UserRecord,
)

ACTIVE_BANNER_KEY = "active_banner"


class Base(DeclarativeBase):
    pass


class UserTable(Base):
    __tablename__ = "gacha_users"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    total_draws: Mapped[int] = mapped_column(Integer, default=0)
    rarity_counts: Mapped[dict] = mapped_column(JSON, default=dict)
    last_draw_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pity_legendary: Mapped[int] = mapped_column(Integer, default=0)
    pity_mythic: Mapped[int] = mapped_column(Integer, default=0)


class ItemTable(Base):
    __tablename__ = "gacha_items"
    __table_args__ = (UniqueConstraint("name", "group_label", name="uq_gacha_items_name_group"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    group_label: Mapped[str] = mapped_column(String(255))
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)


class OwnershipTable(Base):
    __tablename__ = "gacha_ownership"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_gacha_ownership_quantity"),)

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("gacha_users.user_id", ondelete="CASCADE"), primary_key=True
    )
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("gacha_items.id", ondelete="CASCADE"), primary_key=True
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    tier: Mapped[int] = mapped_column(Integer, default=1)


class TradeTable(Base):
    __tablename__ = "gacha_trades"

    trade_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    proposer_id: Mapped[str] = mapped_column(String(64), index=True)
    recipient_id: Mapped[str] = mapped_column(String(64), index=True)
    give_item_id: Mapped[int] = mapped_column(Integer)
    requested_item_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=TradeStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class BannerTable(Base):
    __tablename__ = "gacha_banners"

    name: Mapped[str] = mapped_column(String(128), primary_key=True)
    focus_groups: Mapped[list[str]] = mapped_column(JSON)
    bonus_percent: Mapped[int] = mapped_column(Integer)


class StateTable(Base):
    __tablename__ = "gacha_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str | None] = mapped_column(String(255), nullable=True)


class AuditTable(Base):
    __tablename__ = "gacha_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    action: Mapped[str] = mapped_column(String(128))
    payload: Mapped[dict] = mapped_column(JSON)


class AsyncSQLAlchemyStorage:
    """Bundle of async stores backed by SQLAlchemy."""

    def __init__(self, dsn: str, *, echo: bool = False) -> None:
        self._engine = create_async_engine(dsn, echo=echo, future=True)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def init_models(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def ledger_store(self) -> "AsyncSQLAlchemyLedgerStore":
        # SQLite has a single writer and ignores FOR UPDATE.
        serialize = self._engine.dialect.name == "sqlite"
        return AsyncSQLAlchemyLedgerStore(self._session_factory, serialize_writes=serialize)

    def banner_store(self) -> "AsyncSQLAlchemyBannerStore":
        return AsyncSQLAlchemyBannerStore(self._session_factory)

    def audit_store(self) -> "AsyncSQLAlchemyAuditStore":
        return AsyncSQLAlchemyAuditStore(self._session_factory)


class AsyncSQLAlchemyLedgerStore(LedgerStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        serialize_writes: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock() if serialize_writes else None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTransaction]:
        async with self._write_lock or nullcontext():
            async with self._session_factory() as session:
                async with session.begin():
                    yield _SQLAlchemyTransaction(
                        session, use_savepoints=self._write_lock is None
                    )

    async def inventory(self, user_id: str, limit: int = 20) -> Sequence[InventoryRow]:
        async with self._session_factory() as session:
            stmt = (
                select(OwnershipTable, ItemTable)
                .join(ItemTable, ItemTable.id == OwnershipTable.item_id)
                .where(OwnershipTable.user_id == user_id)
                .order_by(OwnershipTable.quantity.desc(), ItemTable.name.asc())
                .limit(limit)
            )
            rows = (await session.execute(stmt)).all()
            return [
                InventoryRow(item=_item_record(item), quantity=own.quantity, tier=own.tier)
                for own, item in rows
            ]

    async def search_item_names(self, fragment: str, limit: int = 25) -> Sequence[str]:
        async with self._session_factory() as session:
            stmt = (
                select(ItemTable.name)
                .where(func.lower(ItemTable.name).contains(fragment.lower(), autoescape=True))
                .distinct()
                .order_by(ItemTable.name)
                .limit(limit)
            )
            return list((await session.execute(stmt)).scalars().all())

    async def pending_trades(self, user_id: str) -> Sequence[TradeRecord]:
        async with self._session_factory() as session:
            stmt = (
                select(TradeTable)
                .where(
                    TradeTable.status == TradeStatus.PENDING.value,
                    or_(TradeTable.proposer_id == user_id, TradeTable.recipient_id == user_id),
                )
                .order_by(TradeTable.created_at)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_trade_record(row) for row in rows]

    async def totals(self) -> LedgerTotals:
        async with self._session_factory() as session:
            users = await session.scalar(select(func.count()).select_from(UserTable))
            items = await session.scalar(select(func.count()).select_from(ItemTable))
            ownerships = await session.scalar(select(func.count()).select_from(OwnershipTable))
            return LedgerTotals(users=users or 0, items=items or 0, ownerships=ownerships or 0)

    async def reset(self) -> None:
        async with self._write_lock or nullcontext():
            async with self._session_factory() as session:
                async with session.begin():
                    for table in (OwnershipTable, TradeTable, ItemTable, UserTable):
                        await session.execute(delete(table))


class _SQLAlchemyTransaction(LedgerTransaction):
    def __init__(self, session: AsyncSession, *, use_savepoints: bool = True) -> None:
        self._session = session
        self._use_savepoints = use_savepoints

    async def _insert(self, row: Base) -> None:
        # Writers are serialized whenever savepoints are off, so this insert cannot race.
        if self._use_savepoints:
            async with self._session.begin_nested():
                self._session.add(row)
        else:
            self._session.add(row)
            await self._session.flush()

    async def get_user(self, user_id: str) -> UserRecord | None:
        row = await self._session.get(UserTable, user_id, with_for_update=True)
        return _user_record(row) if row else None

    async def get_or_create_user(self, user_id: str, display_name: str | None = None) -> UserRecord:
        row = await self._session.get(UserTable, user_id, with_for_update=True)
        if row is None:
            try:
                row = UserTable(
                    user_id=user_id,
                    display_name=display_name,
                    total_draws=0,
                    rarity_counts={},
                    pity_legendary=0,
                    pity_mythic=0,
                )
                await self._insert(row)
            except IntegrityError:
                # Created concurrently by another transaction.
                row = await self._session.get(
                    UserTable, user_id, with_for_update=True, populate_existing=True
                )
        if display_name and row.display_name != display_name:
            row.display_name = display_name
        return _user_record(row)

    async def save_user(self, record: UserRecord) -> None:
        row = await self._session.get(UserTable, record.user_id)
        if row is None:
            row = UserTable(user_id=record.user_id)
            self._session.add(row)
        row.display_name = record.display_name
        row.total_draws = record.total_draws
        row.rarity_counts = dict(record.rarity_counts)
        row.last_draw_at = record.last_draw_at
        row.pity_legendary = record.pity_legendary
        row.pity_mythic = record.pity_mythic
        await self._session.flush()

    async def get_item(self, item_id: int) -> ItemRecord | None:
        row = await self._session.get(ItemTable, item_id)
        return _item_record(row) if row else None

    async def find_item(self, name: str, group: str) -> ItemRecord | None:
        stmt = select(ItemTable).where(ItemTable.name == name, ItemTable.group_label == group)
        row = (await self._session.execute(stmt)).scalars().first()
        return _item_record(row) if row else None

    async def find_item_by_name(self, name: str) -> ItemRecord | None:
        stmt = select(ItemTable).where(ItemTable.name == name).order_by(ItemTable.id).limit(1)
        row = (await self._session.execute(stmt)).scalars().first()
        return _item_record(row) if row else None

    async def get_or_create_item(self, name: str, group: str, image_url: str | None) -> ItemRecord:
        existing = await self.find_item(name, group)
        if existing:
            return existing
        row = ItemTable(name=name, group_label=group, image_url=image_url)
        try:
            await self._insert(row)
        except IntegrityError:
            existing = await self.find_item(name, group)
            if existing is None:
                raise
            return existing
        return _item_record(row)

    async def get_ownership(self, user_id: str, item_id: int) -> OwnershipRecord | None:
        row = await self._session.get(
            OwnershipTable, (user_id, item_id), with_for_update=True, populate_existing=True
        )
        return _ownership_record(row) if row else None

    async def find_ownership_by_name(
        self, user_id: str, name: str
    ) -> tuple[OwnershipRecord, ItemRecord] | None:
        stmt = (
            select(OwnershipTable, ItemTable)
            .join(ItemTable, ItemTable.id == OwnershipTable.item_id)
            .where(OwnershipTable.user_id == user_id, ItemTable.name == name)
            .order_by(ItemTable.id)
            .limit(1)
            .with_for_update(of=OwnershipTable)
            .execution_options(populate_existing=True)
        )
        found = (await self._session.execute(stmt)).first()
        if found is None:
            return None
        own, item = found
        return _ownership_record(own), _item_record(item)

    async def save_ownership(self, record: OwnershipRecord) -> None:
        row = await self._session.get(OwnershipTable, (record.user_id, record.item_id))
        if row is None:
            row = OwnershipTable(user_id=record.user_id, item_id=record.item_id)
            self._session.add(row)
        row.quantity = record.quantity
        row.tier = record.tier
        await self._session.flush()

    async def delete_ownership(self, user_id: str, item_id: int) -> None:
        row = await self._session.get(OwnershipTable, (user_id, item_id))
        if row is not None:
            await self._session.delete(row)
            await self._session.flush()

    async def add_trade(self, record: TradeRecord) -> None:
        self._session.add(
            TradeTable(
                trade_id=record.trade_id,
                proposer_id=record.proposer_id,
                recipient_id=record.recipient_id,
                give_item_id=record.give_item_id,
                requested_item_name=record.requested_item_name,
                status=record.status.value,
                created_at=record.created_at,
            )
        )
        await self._session.flush()

    async def get_trade(self, trade_id: str) -> TradeRecord | None:
        row = await self._session.get(
            TradeTable, trade_id, with_for_update=True, populate_existing=True
        )
        return _trade_record(row) if row else None

    async def save_trade(self, record: TradeRecord) -> None:
        row = await self._session.get(TradeTable, record.trade_id)
        if row is None:
            await self.add_trade(record)
            return
        row.status = record.status.value
        row.requested_item_name = record.requested_item_name
        await self._session.flush()


class AsyncSQLAlchemyBannerStore(BannerStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert(self, record: BannerRecord) -> None:
        async with self._session_factory() as session:
            row = await session.get(BannerTable, record.name)
            if row is None:
                row = BannerTable(name=record.name)
                session.add(row)
            row.focus_groups = list(record.focus_groups)
            row.bonus_percent = record.bonus_percent
            await session.commit()

    async def get(self, name: str) -> BannerRecord | None:
        async with self._session_factory() as session:
            row = await session.get(BannerTable, name)
            return _banner_record(row) if row else None

    async def all(self) -> Sequence[BannerRecord]:
        async with self._session_factory() as session:
            rows = (await session.execute(select(BannerTable).order_by(BannerTable.name))).scalars()
            return [_banner_record(row) for row in rows]

    async def delete(self, name: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(BannerTable).where(BannerTable.name == name))
            await session.execute(
                update(StateTable)
                .where(StateTable.key == ACTIVE_BANNER_KEY, StateTable.value == name)
                .values(value=None)
            )
            await session.commit()

    async def get_active_name(self) -> str | None:
        async with self._session_factory() as session:
            row = await session.get(StateTable, ACTIVE_BANNER_KEY)
            return row.value if row else None

    async def set_active_name(self, name: str | None) -> None:
        async with self._session_factory() as session:
            row = await session.get(StateTable, ACTIVE_BANNER_KEY)
            if row is None:
                session.add(StateTable(key=ACTIVE_BANNER_KEY, value=name))
            else:
                row.value = name
            await session.commit()

    async def reset(self) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(BannerTable))
            await session.execute(delete(StateTable))
            await session.commit()


class AsyncSQLAlchemyAuditStore(AuditStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_entry(self, action: str, payload: dict) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditTable(
                    created_at=datetime.now(timezone.utc),
                    action=action,
                    payload=dict(payload),
                )
            )
            await session.commit()


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _user_record(row: UserTable) -> UserRecord:
    return UserRecord(
        user_id=row.user_id,
        display_name=row.display_name,
        total_draws=row.total_draws or 0,
        rarity_counts=dict(row.rarity_counts or {}),
        last_draw_at=_aware(row.last_draw_at),
        pity_legendary=row.pity_legendary or 0,
        pity_mythic=row.pity_mythic or 0,
    )


def _item_record(row: ItemTable) -> ItemRecord:
    return ItemRecord(item_id=row.id, name=row.name, group=row.group_label, image_url=row.image_url)


def _ownership_record(row: OwnershipTable) -> OwnershipRecord:
    return OwnershipRecord(
        user_id=row.user_id, item_id=row.item_id, quantity=row.quantity, tier=row.tier
    )


def _trade_record(row: TradeTable) -> TradeRecord:
    return TradeRecord(
        trade_id=row.trade_id,
        proposer_id=row.proposer_id,
        recipient_id=row.recipient_id,
        give_item_id=row.give_item_id,
        requested_item_name=row.requested_item_name,
        created_at=_aware(row.created_at),
        status=TradeStatus(row.status),
    )


def _banner_record(row: BannerTable) -> BannerRecord:
    return BannerRecord(
        name=row.name,
        focus_groups=tuple(row.focus_groups or ()),
        bonus_percent=row.bonus_percent,
    )
