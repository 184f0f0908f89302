"""Draw sessions: cooldown, three candidates, one committed choice."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from random import Random
from typing import Callable, Mapping
from uuid import uuid4

from .banners import Banner, BannerRegistry
from .candidates import Candidate, CandidatePool
from .events import DRAW_COMMITTED, DRAW_EXPIRED, DRAW_STARTED, EventBus
from .exceptions import CooldownActive, ExternalSourceUnavailable, NotAuthorized, SessionExpired
from .ledger import acquire_units
from .pity import PityState, PityTracker
from .users import UserLike, UserRef
from ..config import DrawConfig
from ..storage.base import ItemRecord, LedgerStore, OwnershipRecord, UserRecord

logger = logging.getLogger(__name__)

DEFAULT_POOL = "anime"


class SessionState(str, Enum):
    INIT = "init"
    COOLDOWN_CHECK = "cooldown_check"
    DRAWING = "drawing"
    AWAITING_CHOICE = "awaiting_choice"
    COMMITTED = "committed"
    EXPIRED = "expired"


@dataclass(slots=True)
class DrawCommit:
    session_id: str
    user_id: str
    candidate: Candidate
    item: ItemRecord
    ownership: OwnershipRecord
    pity: PityState
    total_draws: int


@dataclass(slots=True, eq=False)
class DrawSession:
    session_id: str
    user: UserRef
    pool: str
    started_at: datetime
    expires_at: datetime
    banner: Banner | None = None
    candidates: tuple[Candidate, ...] = ()
    state: SessionState = SessionState.INIT
    commit: DrawCommit | None = None
    settled: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.AWAITING_CHOICE

    def _settle(self, state: SessionState) -> None:
        self.state = state
        self.settled.set()


class DrawService:
    """Run draw sessions against the ledger.

    Nothing but the cooldown stamp is written before a choice is confirmed;
    all external calls happen outside ledger transactions.
    """

    def __init__(
        self,
        store: LedgerStore,
        pools: Mapping[str, CandidatePool],
        pity: PityTracker,
        banners: BannerRegistry,
        config: DrawConfig,
        event_bus: EventBus,
        *,
        rng: Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._pools = dict(pools)
        self._pity = pity
        self._banners = banners
        self._config = config
        self._events = event_bus
        self._rng = rng or Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: dict[str, DrawSession] = {}

    @property
    def pool_names(self) -> tuple[str, ...]:
        return tuple(self._pools)

    def register_pool(self, name: str, pool: CandidatePool) -> None:
        if name in self._pools:
            raise ValueError(f"Pool {name} already registered")
        self._pools[name] = pool

    def get_session(self, session_id: str) -> DrawSession | None:
        return self._sessions.get(session_id)

    async def start_draw(self, user: UserLike, *, pool: str = DEFAULT_POOL) -> DrawSession:
        user = user if isinstance(user, UserRef) else UserRef.of(user)
        try:
            candidate_pool = self._pools[pool]
        except KeyError as exc:
            raise ValueError(f"Unknown draw pool {pool}") from exc

        await self.expire_stale()
        now = self._clock()
        session = DrawSession(
            session_id=uuid4().hex,
            user=user,
            pool=pool,
            started_at=now,
            expires_at=now,
        )

        session.state = SessionState.COOLDOWN_CHECK
        pity_state = await self._claim_slot(user, now)

        session.state = SessionState.DRAWING
        session.banner = await self._banners.active()
        candidates: list[Candidate] = []
        try:
            for _ in range(self._config.candidates_per_draw):
                tier = self._pity.select(pity_state, self._rng)
                candidates.append(await candidate_pool.draw(tier, session.banner))
        except ExternalSourceUnavailable:
            logger.warning(
                "Draw for %s failed after %d/%d candidates; cooldown stays consumed",
                user.id,
                len(candidates),
                self._config.candidates_per_draw,
            )
            raise

        session.candidates = tuple(candidates)
        session.expires_at = self._clock() + timedelta(seconds=self._config.choice_timeout_seconds)
        session.state = SessionState.AWAITING_CHOICE
        self._sessions[session.session_id] = session

        await self._events.publish(
            DRAW_STARTED,
            {
                "session_id": session.session_id,
                "user_id": user.id,
                "pool": pool,
                "rarities": [candidate.rarity.value for candidate in candidates],
            },
        )
        return session

    async def confirm_choice(self, session_id: str, index: int, caller: UserLike) -> DrawCommit:
        session = self._sessions.get(session_id)
        if session is None or not session.is_open:
            raise SessionExpired(f"Draw session {session_id} is not open")
        caller_id = caller.id if isinstance(caller, UserRef) else str(caller)
        if caller_id != session.user.id:
            raise NotAuthorized("Only the user who started the draw can choose")
        if not 0 <= index < len(session.candidates):
            raise ValueError(f"Choice index must be between 0 and {len(session.candidates) - 1}")
        if self._clock() >= session.expires_at:
            await self.expire(session_id)
            raise SessionExpired(f"Draw session {session_id} expired")

        # Claimed before the first await so a second confirmation cannot commit twice.
        del self._sessions[session_id]
        chosen = session.candidates[index]
        try:
            commit = await self._commit(session, chosen)
        except BaseException:
            session._settle(SessionState.EXPIRED)
            raise
        session.commit = commit
        session._settle(SessionState.COMMITTED)

        logger.info(
            "User %s committed %s %s (%s)",
            session.user.id,
            chosen.rarity.value,
            chosen.character.name,
            chosen.character.group,
        )
        await self._events.publish(
            DRAW_COMMITTED,
            {
                "session_id": session_id,
                "user_id": session.user.id,
                "item_id": commit.item.item_id,
                "rarity": chosen.rarity.value,
            },
        )
        return commit

    async def expire(self, session_id: str) -> bool:
        """Close an open session without touching the ledger."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session._settle(SessionState.EXPIRED)
        logger.debug("Draw session %s for %s expired", session_id, session.user.id)
        await self._events.publish(
            DRAW_EXPIRED, {"session_id": session_id, "user_id": session.user.id}
        )
        return True

    async def expire_stale(self) -> int:
        now = self._clock()
        stale = [sid for sid, session in self._sessions.items() if now >= session.expires_at]
        for session_id in stale:
            await self.expire(session_id)
        return len(stale)

    async def wait_for_choice(self, session_id: str) -> DrawCommit:
        """Suspend until the session is committed or its deadline passes."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionExpired(f"Draw session {session_id} is not open")
        timeout = max(0.0, (session.expires_at - self._clock()).total_seconds())
        try:
            await asyncio.wait_for(session.settled.wait(), timeout)
        except asyncio.TimeoutError:
            if not await self.expire(session_id):
                # A confirmation claimed the session first; its commit is in flight.
                await session.settled.wait()
        if session.state is SessionState.COMMITTED and session.commit is not None:
            return session.commit
        raise SessionExpired(f"Draw session {session_id} expired")

    async def cooldown_remaining(self, user: UserLike) -> int:
        user = user if isinstance(user, UserRef) else UserRef.of(user)
        async with self._store.transaction() as tx:
            record = await tx.get_or_create_user(user.id, user.display_name)
        return self._cooldown_remaining(record, self._clock())

    async def _claim_slot(self, user: UserRef, now: datetime) -> PityState:
        async with self._store.transaction() as tx:
            record = await tx.get_or_create_user(user.id, user.display_name)
            remaining = self._cooldown_remaining(record, now)
            if remaining > 0:
                raise CooldownActive(remaining)
            record.last_draw_at = now
            await tx.save_user(record)
        return PityState.of(record)

    async def _commit(self, session: DrawSession, chosen: Candidate) -> DrawCommit:
        character = chosen.character
        async with self._store.transaction() as tx:
            record = await tx.get_or_create_user(session.user.id, session.user.display_name)
            item = await tx.get_or_create_item(character.name, character.group, character.image_url)
            ownership = await acquire_units(tx, record.user_id, item.item_id)

            pity = self._pity.advance(PityState.of(record), chosen.rarity)
            pity.apply_to(record)
            record.total_draws += 1
            key = chosen.rarity.value
            record.rarity_counts[key] = record.rarity_counts.get(key, 0) + 1
            await tx.save_user(record)

        return DrawCommit(
            session_id=session.session_id,
            user_id=record.user_id,
            candidate=chosen,
            item=item,
            ownership=ownership,
            pity=pity,
            total_draws=record.total_draws,
        )

    def _cooldown_remaining(self, record: UserRecord, now: datetime) -> int:
        if not record.last_draw_at:
            return 0
        last_draw_at = _as_utc(record.last_draw_at)
        elapsed = (_as_utc(now) - last_draw_at).total_seconds()
        remaining = self._config.cooldown_seconds - elapsed
        return max(0, math.ceil(remaining))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
