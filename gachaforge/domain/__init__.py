"""Domain models and services."""

from .banners import Banner, BannerRegistry, parse_focus_groups
from .candidates import Candidate, CandidateDrawer, CandidatePool, Character, CharacterSource
from .draws import DEFAULT_POOL, DrawCommit, DrawService, DrawSession, SessionState
from .events import EventBus
from .exceptions import (
    CooldownActive,
    ExternalSourceUnavailable,
    GachaError,
    InsufficientQuantity,
    InvalidState,
    MaxTierReached,
    NotAuthorized,
    NotOwned,
    SessionExpired,
    StaleOffer,
    UnknownBanner,
    UnknownItem,
    UnknownTrade,
)
from .ledger import MergeResult, OwnershipLedger, TransferResult
from .pity import PityState, PityTracker
from .rarity import DEFAULT_RARITY_TABLE, Rarity, RarityTable, RarityTier
from .trades import Settlement, TradeService
from .users import UserRef, UserService, UserStats

__all__ = [
    "Banner",
    "BannerRegistry",
    "parse_focus_groups",
    "Candidate",
    "CandidateDrawer",
    "CandidatePool",
    "Character",
    "CharacterSource",
    "DEFAULT_POOL",
    "DrawCommit",
    "DrawService",
    "DrawSession",
    "SessionState",
    "EventBus",
    "CooldownActive",
    "ExternalSourceUnavailable",
    "GachaError",
    "InsufficientQuantity",
    "InvalidState",
    "MaxTierReached",
    "NotAuthorized",
    "NotOwned",
    "SessionExpired",
    "StaleOffer",
    "UnknownBanner",
    "UnknownItem",
    "UnknownTrade",
    "MergeResult",
    "OwnershipLedger",
    "TransferResult",
    "PityState",
    "PityTracker",
    "DEFAULT_RARITY_TABLE",
    "Rarity",
    "RarityTable",
    "RarityTier",
    "Settlement",
    "TradeService",
    "UserRef",
    "UserService",
    "UserStats",
]
