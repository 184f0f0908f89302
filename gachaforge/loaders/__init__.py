"""Loaders for declarative pool definitions."""

from .json_loader import (
    BUILTIN_POOLS,
    builtin_pool_path,
    load_builtin_pools,
    load_pool_from_json,
    parse_pool_dict,
    validate_pool_dict,
    validate_pool_file,
)

__all__ = [
    "BUILTIN_POOLS",
    "builtin_pool_path",
    "load_builtin_pools",
    "load_pool_from_json",
    "parse_pool_dict",
    "validate_pool_dict",
    "validate_pool_file",
]
