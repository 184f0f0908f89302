import asyncio

import pytest

from gachaforge.domain.exceptions import (
    InvalidState,
    NotAuthorized,
    NotOwned,
    StaleOffer,
    UnknownTrade,
)
from gachaforge.domain.ledger import acquire_units
from gachaforge.storage.base import TradeStatus
from gachaforge.testing import app_fixture


@pytest.fixture()
def app():
    return app_fixture()


async def _give(app, user_id, name, quantity=1):
    async with app.ledger_store.transaction() as tx:
        await tx.get_or_create_user(user_id)
        item = await tx.get_or_create_item(name, "Cowboy Bebop", None)
        await acquire_units(tx, user_id, item.item_id, quantity)
    return item


@pytest.mark.asyncio()
async def test_propose_requires_ownership(app):
    with pytest.raises(NotOwned):
        await app.trades.propose("1", "2", "Spike Spiegel")


@pytest.mark.asyncio()
async def test_accept_moves_one_unit(app):
    item = await _give(app, "1", "Spike Spiegel", quantity=2)
    trade = await app.trades.propose("1", "2", "Spike Spiegel", "Faye Valentine")

    assert trade.give_item_id == item.item_id
    assert trade.status is TradeStatus.PENDING
    settlement = await app.trades.accept(trade.trade_id, "2")

    assert settlement.trade.status is TradeStatus.ACCEPTED
    assert settlement.transfer.source_quantity == 1
    assert settlement.transfer.destination_quantity == 1
    stored = await app.trades.get(trade.trade_id)
    assert stored.status is TradeStatus.ACCEPTED
    assert stored.requested_item_name == "Faye Valentine"


@pytest.mark.asyncio()
async def test_trade_settles_at_most_once(app):
    await _give(app, "1", "Spike Spiegel", quantity=2)
    trade = await app.trades.propose("1", "2", "Spike Spiegel")
    await app.trades.accept(trade.trade_id, "2")

    with pytest.raises(InvalidState):
        await app.trades.accept(trade.trade_id, "2")
    with pytest.raises(InvalidState):
        await app.trades.cancel(trade.trade_id, "1")

    owned, _ = await app.ledger.holding("2", "Spike Spiegel")
    assert owned.quantity == 1


@pytest.mark.asyncio()
async def test_concurrent_accepts_settle_once(app):
    await _give(app, "1", "Spike Spiegel", quantity=3)
    trade = await app.trades.propose("1", "2", "Spike Spiegel")

    results = await asyncio.gather(
        app.trades.accept(trade.trade_id, "2"),
        app.trades.accept(trade.trade_id, "2"),
        return_exceptions=True,
    )

    assert sum(isinstance(result, InvalidState) for result in results) == 1
    owned, _ = await app.ledger.holding("2", "Spike Spiegel")
    assert owned.quantity == 1


@pytest.mark.asyncio()
async def test_only_recipient_accepts_and_only_proposer_cancels(app):
    await _give(app, "1", "Spike Spiegel")
    trade = await app.trades.propose("1", "2", "Spike Spiegel")

    with pytest.raises(NotAuthorized):
        await app.trades.accept(trade.trade_id, "1")
    with pytest.raises(NotAuthorized):
        await app.trades.cancel(trade.trade_id, "2")

    canceled = await app.trades.cancel(trade.trade_id, "1")
    assert canceled.status is TradeStatus.CANCELED
    with pytest.raises(InvalidState):
        await app.trades.accept(trade.trade_id, "2")


@pytest.mark.asyncio()
async def test_stale_offer_is_rejected(app):
    item = await _give(app, "1", "Spike Spiegel")
    trade = await app.trades.propose("1", "2", "Spike Spiegel")
    await app.ledger.transfer("1", "3", item.item_id)

    with pytest.raises(StaleOffer):
        await app.trades.accept(trade.trade_id, "2")

    stored = await app.trades.get(trade.trade_id)
    assert stored.status is TradeStatus.PENDING
    assert await app.ledger.holding("2", "Spike Spiegel") is None


@pytest.mark.asyncio()
async def test_last_unit_leaves_proposer_inventory(app):
    await _give(app, "1", "Spike Spiegel")
    trade = await app.trades.propose("1", "2", "Spike Spiegel")
    await app.trades.accept(trade.trade_id, "2")

    assert await app.ledger.inventory("1") == []


@pytest.mark.asyncio()
async def test_unknown_trade(app):
    with pytest.raises(UnknownTrade):
        await app.trades.get("nope")
    with pytest.raises(UnknownTrade):
        await app.trades.accept("nope", "2")


@pytest.mark.asyncio()
async def test_pending_for_lists_open_trades(app):
    await _give(app, "1", "Spike Spiegel", quantity=3)
    first = await app.trades.propose("1", "2", "Spike Spiegel")
    second = await app.trades.propose("1", "3", "Spike Spiegel")
    await app.trades.cancel(second.trade_id, "1")

    assert [t.trade_id for t in await app.trades.pending_for("2")] == [first.trade_id]
    assert [t.trade_id for t in await app.trades.pending_for("1")] == [first.trade_id]
    assert await app.trades.pending_for("3") == []


@pytest.mark.asyncio()
async def test_self_trade_keeps_holding(app):
    item = await _give(app, "1", "Spike Spiegel")
    async with app.ledger_store.transaction() as tx:
        owned = await tx.get_ownership("1", item.item_id)
        owned.tier = 3
        await tx.save_ownership(owned)

    trade = await app.trades.propose("1", "1", "Spike Spiegel")
    settlement = await app.trades.accept(trade.trade_id, "1")

    assert settlement.trade.status is TradeStatus.ACCEPTED
    owned, _ = await app.ledger.holding("1", "Spike Spiegel")
    assert (owned.quantity, owned.tier) == (1, 3)
