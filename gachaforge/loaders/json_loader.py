"""Load local candidate pools from JSON definitions."""

from __future__ import annotations

import json
from pathlib import Path
from random import Random
from typing import Any

from ..domain.rarity import Rarity
from ..sources.local import DEFAULT_FORM, CatalogEntry, LocalCatalogPool, StatRange

BUILTIN_POOLS_DIR = Path(__file__).resolve().parent.parent / "data"
BUILTIN_POOLS = ("ygo", "pokemon")


def builtin_pool_path(name: str) -> Path:
    return BUILTIN_POOLS_DIR / f"{name}.json"


def load_pool_from_json(path: str | Path, *, rng: Random | None = None) -> LocalCatalogPool:
    """Read, validate and build a pool from a JSON file."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_pool_dict(data, rng=rng)


def load_builtin_pools(*, rng: Random | None = None) -> dict[str, LocalCatalogPool]:
    pools: dict[str, LocalCatalogPool] = {}
    for name in BUILTIN_POOLS:
        pool = load_pool_from_json(builtin_pool_path(name), rng=rng)
        pools[pool.name] = pool
    return pools


def parse_pool_dict(data: dict[str, Any], *, rng: Random | None = None) -> LocalCatalogPool:
    """Parse a decoded JSON dict into a pool."""
    errors = validate_pool_dict(data)
    if errors:
        raise ValueError(_format_errors("Pool validation failed", errors))

    entries = tuple(parse_entry(entry) for entry in data["entries"])
    stat_rules = {
        Rarity(rarity): {stat: StatRange(int(bounds[0]), int(bounds[1])) for stat, bounds in rules.items()}
        for rarity, rules in data.get("stats", {}).items()
    }
    form_weights = {
        Rarity(rarity): {str(form): float(weight) for form, weight in weights.items()}
        for rarity, weights in data.get("formWeights", {}).items()
    }
    return LocalCatalogPool(
        name=data["name"],
        group=data["group"],
        entries=entries,
        stat_rules=stat_rules,
        form_weights=form_weights,
        rng=rng or Random(),
    )


def parse_entry(entry: dict[str, Any]) -> CatalogEntry:
    return CatalogEntry(
        name=entry["name"],
        image_url=entry.get("image"),
        form=entry.get("form", DEFAULT_FORM),
    )


def validate_pool_file(path: str | Path) -> list[str]:
    """Validate a pool JSON file and return a list of errors."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        return [f"Cannot read pool file {path}: {exc}"]
    return validate_pool_dict(data)


def validate_pool_dict(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Pool definition must be an object."]

    for field_name in ("name", "group"):
        value = data.get(field_name)
        if not isinstance(value, str) or not value.strip():
            errors.append(f"Pool must define non-empty '{field_name}'.")

    entries_raw = data.get("entries")
    forms: set[str] = set()
    if not isinstance(entries_raw, list) or not entries_raw:
        errors.append("Pool must contain non-empty 'entries' array.")
    else:
        names: set[str] = set()
        for idx, entry in enumerate(entries_raw, start=1):
            if not isinstance(entry, dict):
                errors.append(f"Entry #{idx} must be an object.")
                continue
            name = entry.get("name")
            if not isinstance(name, str) or not name.strip():
                errors.append(f"Entry #{idx} must define non-empty 'name'.")
                continue
            if name in names:
                errors.append(f"Entry '{name}' defined multiple times.")
            names.add(name)
            image = entry.get("image")
            if image is not None and not isinstance(image, str):
                errors.append(f"Entry '{name}' has invalid 'image' value.")
            form = entry.get("form", DEFAULT_FORM)
            if not isinstance(form, str) or not form.strip():
                errors.append(f"Entry '{name}' has invalid 'form' value '{form}'.")
            else:
                forms.add(form)

    stats_raw = data.get("stats", {})
    if not isinstance(stats_raw, dict):
        errors.append("'stats' must be an object keyed by rarity.")
    else:
        for rarity_value, rules in stats_raw.items():
            if not _is_rarity(rarity_value):
                errors.append(f"Stats use unknown rarity '{rarity_value}'.")
                continue
            if not isinstance(rules, dict):
                errors.append(f"Stats for '{rarity_value}' must be an object.")
                continue
            for stat, bounds in rules.items():
                if (
                    not isinstance(bounds, list)
                    or len(bounds) != 2
                    or not all(isinstance(value, int) for value in bounds)
                ):
                    errors.append(f"Stat '{stat}' for '{rarity_value}' must be a [min, max] pair of integers.")
                elif bounds[0] > bounds[1]:
                    errors.append(f"Stat '{stat}' for '{rarity_value}' has min greater than max.")

    weights_raw = data.get("formWeights", {})
    if not isinstance(weights_raw, dict):
        errors.append("'formWeights' must be an object keyed by rarity.")
    else:
        for rarity_value, weights in weights_raw.items():
            if not _is_rarity(rarity_value):
                errors.append(f"Form weights use unknown rarity '{rarity_value}'.")
                continue
            if not isinstance(weights, dict) or not weights:
                errors.append(f"Form weights for '{rarity_value}' must be a non-empty object.")
                continue
            for form, weight in weights.items():
                if not isinstance(weight, (int, float)) or weight < 0:
                    errors.append(f"Form weight '{form}' for '{rarity_value}' must be a non-negative number.")
                elif forms and form not in forms:
                    errors.append(f"Form weight '{form}' for '{rarity_value}' has no entries.")
            if all(isinstance(w, (int, float)) and w <= 0 for w in weights.values()):
                errors.append(f"Form weights for '{rarity_value}' must have a positive total.")

    return errors


def _is_rarity(value: Any) -> bool:
    try:
        Rarity(value)
    except ValueError:
        return False
    return True


def _format_errors(title: str, errors: list[str]) -> str:
    bullet_list = "\n".join(f"- {err}" for err in errors)
    return f"{title}:\n{bullet_list}"
