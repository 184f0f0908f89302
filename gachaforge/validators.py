"""Validation utilities for gachaforge applications."""

from __future__ import annotations

from .app import GachaApp
from .domain.draws import DEFAULT_POOL
from .domain.rarity import Rarity
from .sources.local import LocalCatalogPool


def validate_app(app: GachaApp) -> list[str]:
    """Return list of validation errors discovered in configured app."""
    errors: list[str] = []
    config = app.config

    for rarity_code, weight in config.draw.rarity_weights.items():
        try:
            Rarity(rarity_code)
        except ValueError:
            errors.append(f"Draw configuration rarity weight contains invalid rarity '{rarity_code}'.")
            continue
        if weight is None or weight < 0:
            errors.append(f"Draw configuration rarity weight for '{rarity_code}' cannot be negative.")
        elif weight != int(weight):
            errors.append(f"Draw configuration rarity weight for '{rarity_code}' must be an integer.")

    draw = config.draw
    if draw.cooldown_seconds < 0:
        errors.append("Draw configuration 'cooldown_seconds' cannot be negative.")
    if draw.candidates_per_draw <= 0:
        errors.append("Draw configuration 'candidates_per_draw' must be positive.")
    if draw.choice_timeout_seconds <= 0:
        errors.append("Draw configuration 'choice_timeout_seconds' must be positive.")
    if draw.max_banner_attempts < 1:
        errors.append("Draw configuration 'max_banner_attempts' must be at least 1.")
    if not 0 <= draw.max_reroll_chance < 1:
        errors.append("Draw configuration 'max_reroll_chance' must be in [0, 1).")

    pity = config.pity
    if pity.legendary_threshold < 1 or pity.mythic_threshold < 1:
        errors.append("Pity thresholds must be positive.")
    elif pity.legendary_threshold > pity.mythic_threshold:
        errors.append("Legendary pity threshold should not exceed the mythic threshold.")

    ledger = config.ledger
    if ledger.merge_cost <= 0:
        errors.append("Ledger configuration 'merge_cost' must be positive.")
    if ledger.merge_min_quantity <= ledger.merge_cost:
        errors.append("Ledger configuration 'merge_min_quantity' must exceed 'merge_cost'.")
    if ledger.max_tier < 1:
        errors.append("Ledger configuration 'max_tier' must be at least 1.")
    if ledger.inventory_limit <= 0:
        errors.append("Ledger configuration 'inventory_limit' must be positive.")

    if config.source.per_page <= 0:
        errors.append("Source configuration 'per_page' must be positive.")
    if config.source.timeout_seconds <= 0:
        errors.append("Source configuration 'timeout_seconds' must be positive.")

    if DEFAULT_POOL not in app.pools:
        errors.append(f"Pool '{DEFAULT_POOL}' is not registered.")
    for name, pool in app.pools.items():
        if isinstance(pool, LocalCatalogPool):
            missing = [r.value for r in Rarity if r not in pool.stat_rules]
            if pool.stat_rules and missing:
                errors.append(f"Pool '{name}' has no stat rules for {', '.join(missing)}.")

    return errors


__all__ = ["validate_app"]
