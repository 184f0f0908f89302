"""Two-party trade proposals and their atomic settlement."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Sequence
from uuid import uuid4

from .events import TRADE_ACCEPTED, TRADE_CANCELED, TRADE_PROPOSED, EventBus
from .exceptions import InvalidState, NotAuthorized, NotOwned, StaleOffer, UnknownTrade
from .ledger import TransferResult, transfer_units
from .users import UserLike, UserRef, user_key
from ..storage.base import LedgerStore, LedgerTransaction, TradeRecord, TradeStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Settlement:
    trade: TradeRecord
    transfer: TransferResult


class TradeService:
    """PENDING trades move to ACCEPTED or CANCELED exactly once.

    Only the offered side is settled; the requested item name is kept for
    display and is never checked or transferred.
    """

    def __init__(
        self,
        store: LedgerStore,
        event_bus: EventBus,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._events = event_bus
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def propose(
        self,
        proposer: UserLike,
        recipient: UserLike,
        give_item_name: str,
        requested_item_name: str | None = None,
    ) -> TradeRecord:
        proposer_id = user_key(proposer)
        recipient_id = user_key(recipient)
        async with self._store.transaction() as tx:
            await tx.get_or_create_user(proposer_id, _display_name(proposer))
            found = await tx.find_ownership_by_name(proposer_id, give_item_name)
            if found is None or found[0].quantity < 1:
                raise NotOwned(f"User {proposer_id} does not own {give_item_name}")
            ownership, item = found
            await tx.get_or_create_user(recipient_id, _display_name(recipient))
            trade = TradeRecord(
                trade_id=uuid4().hex,
                proposer_id=proposer_id,
                recipient_id=recipient_id,
                give_item_id=item.item_id,
                requested_item_name=requested_item_name,
                created_at=self._clock(),
            )
            await tx.add_trade(trade)

        logger.info(
            "Trade %s proposed: %s offers %s to %s",
            trade.trade_id,
            proposer_id,
            item.name,
            recipient_id,
        )
        await self._events.publish(
            TRADE_PROPOSED,
            {
                "trade_id": trade.trade_id,
                "proposer_id": proposer_id,
                "recipient_id": recipient_id,
                "give_item_id": item.item_id,
                "requested_item_name": requested_item_name,
            },
        )
        return trade

    async def cancel(self, trade_id: str, caller: UserLike) -> TradeRecord:
        caller_id = user_key(caller)
        async with self._store.transaction() as tx:
            trade = await self._require(tx, trade_id)
            if trade.proposer_id != caller_id:
                raise NotAuthorized("Only the proposer can cancel a trade")
            _ensure_pending(trade)
            trade.status = TradeStatus.CANCELED
            await tx.save_trade(trade)

        logger.info("Trade %s canceled by %s", trade_id, caller_id)
        await self._events.publish(TRADE_CANCELED, {"trade_id": trade_id})
        return trade

    async def accept(self, trade_id: str, caller: UserLike) -> Settlement:
        caller_id = user_key(caller)
        async with self._store.transaction() as tx:
            trade = await self._require(tx, trade_id)
            if trade.recipient_id != caller_id:
                raise NotAuthorized("Only the recipient can accept a trade")
            _ensure_pending(trade)
            offered = await tx.get_ownership(trade.proposer_id, trade.give_item_id)
            if offered is None or offered.quantity < 1:
                raise StaleOffer(f"Proposer no longer holds item {trade.give_item_id}")
            transfer = await transfer_units(
                tx, trade.proposer_id, trade.recipient_id, trade.give_item_id, 1
            )
            trade.status = TradeStatus.ACCEPTED
            await tx.save_trade(trade)

        logger.info("Trade %s accepted by %s", trade_id, caller_id)
        await self._events.publish(
            TRADE_ACCEPTED,
            {
                "trade_id": trade_id,
                "proposer_id": trade.proposer_id,
                "recipient_id": trade.recipient_id,
                "item_id": trade.give_item_id,
            },
        )
        return Settlement(trade=trade, transfer=transfer)

    async def get(self, trade_id: str) -> TradeRecord:
        async with self._store.transaction() as tx:
            return await self._require(tx, trade_id)

    async def pending_for(self, user: UserLike) -> Sequence[TradeRecord]:
        return await self._store.pending_trades(user_key(user))

    async def _require(self, tx: LedgerTransaction, trade_id: str) -> TradeRecord:
        trade = await tx.get_trade(trade_id)
        if trade is None:
            raise UnknownTrade(f"Trade {trade_id} not found")
        return trade


def _ensure_pending(trade: TradeRecord) -> None:
    if trade.status is not TradeStatus.PENDING:
        raise InvalidState(f"Trade {trade.trade_id} is {trade.status.value}")


def _display_name(user: UserLike) -> str | None:
    return user.display_name if isinstance(user, UserRef) else None
