"""gachaforge public API."""

from .app import GachaApp
from .config import GachaConfig
from .domain.users import UserRef

__all__ = [
    "GachaApp",
    "GachaConfig",
    "UserRef",
]
