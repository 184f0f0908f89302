from datetime import datetime, timezone

import pytest

from gachaforge.config import AdminConfig, GachaConfig
from gachaforge.domain.exceptions import UnknownItem
from gachaforge.domain.ledger import acquire_units
from gachaforge.storage.memory import InMemoryAuditStore
from gachaforge.testing import FrozenClock, app_fixture


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def admin_app(clock):
    return app_fixture(clock=clock, audit_store=InMemoryAuditStore())


async def _seed_item(app, name="Spike Spiegel"):
    async with app.ledger_store.transaction() as tx:
        await tx.get_or_create_user("1")
        item = await tx.get_or_create_item(name, "Cowboy Bebop", None)
        await acquire_units(tx, "1", item.item_id)
    return item


@pytest.mark.asyncio()
async def test_grant_item_adds_units_and_audits(admin_app):
    await _seed_item(admin_app)

    owned = await admin_app.admin.grant_item("99", "Spike Spiegel", 3)

    assert owned.quantity == 3
    entries = admin_app.audit_store.dump()
    assert [action for _, action, _ in entries] == ["grant_item"]
    assert entries[0][2]["user_id"] == "99"
    assert entries[0][2]["quantity"] == 3


@pytest.mark.asyncio()
async def test_grant_unknown_item(admin_app):
    with pytest.raises(UnknownItem):
        await admin_app.admin.grant_item("99", "Nobody", 1)
    assert admin_app.audit_store.dump() == []


@pytest.mark.asyncio()
async def test_grant_requires_positive_quantity(admin_app):
    await _seed_item(admin_app)
    with pytest.raises(ValueError):
        await admin_app.admin.grant_item("99", "Spike Spiegel", 0)


@pytest.mark.asyncio()
async def test_global_stats_counts_rows(admin_app):
    await _seed_item(admin_app, "Spike Spiegel")
    await _seed_item(admin_app, "Faye Valentine")
    await admin_app.admin.grant_item("2", "Faye Valentine")

    totals = await admin_app.admin.global_stats()

    assert (totals.users, totals.items, totals.ownerships) == (2, 2, 3)


@pytest.mark.asyncio()
async def test_reset_all_wipes_everything(admin_app):
    await _seed_item(admin_app)
    await admin_app.banners.save("summer", "ONE PIECE", 40)
    await admin_app.banners.set_active("summer")

    await admin_app.admin.reset_all()

    totals = await admin_app.admin.global_stats()
    assert (totals.users, totals.items, totals.ownerships) == (0, 0, 0)
    assert await admin_app.banners.list() == []
    assert await admin_app.banners.active() is None


@pytest.mark.asyncio()
async def test_set_cooldown_lifts_wait(admin_app):
    await admin_app.draws.start_draw("1")
    assert await admin_app.draws.cooldown_remaining("1") == 900

    await admin_app.admin.set_cooldown("1", None)

    assert await admin_app.draws.cooldown_remaining("1") == 0
    entry = admin_app.audit_store.dump()[-1]
    assert entry[1] == "set_cooldown"
    assert entry[2]["timestamp"] is None


@pytest.mark.asyncio()
async def test_set_cooldown_to_a_past_time(admin_app, clock):
    past = datetime(2024, 1, 1, 11, 50, tzinfo=timezone.utc)
    await admin_app.admin.set_cooldown("1", past)
    assert await admin_app.draws.cooldown_remaining("1") == 300


@pytest.mark.asyncio()
async def test_audit_can_be_disabled():
    audit_store = InMemoryAuditStore()
    config = GachaConfig(admin=AdminConfig(enable_audit_logs=False))
    app = app_fixture(config, audit_store=audit_store)

    await app.admin.reset_all()

    assert audit_store.dump() == []


def test_is_admin_normalizes_ids():
    config = AdminConfig(admin_ids={"42"})
    assert config.is_admin(42)
    assert not config.is_admin("43")
