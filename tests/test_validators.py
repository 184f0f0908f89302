from gachaforge.config import GachaConfig, LedgerConfig, PityConfig
from gachaforge.domain.rarity import Rarity
from gachaforge.sources.local import CatalogEntry, LocalCatalogPool, StatRange
from gachaforge.testing import app_fixture
from gachaforge.validators import validate_app


def test_default_app_is_valid():
    assert validate_app(app_fixture()) == []


def test_invalid_draw_configuration():
    app = app_fixture()
    draw = app.config.draw
    draw.cooldown_seconds = -1
    draw.candidates_per_draw = 0
    draw.choice_timeout_seconds = 0
    draw.max_banner_attempts = 0
    draw.max_reroll_chance = 1.5

    errors = validate_app(app)

    assert "Draw configuration 'cooldown_seconds' cannot be negative." in errors
    assert "Draw configuration 'candidates_per_draw' must be positive." in errors
    assert "Draw configuration 'choice_timeout_seconds' must be positive." in errors
    assert "Draw configuration 'max_banner_attempts' must be at least 1." in errors
    assert "Draw configuration 'max_reroll_chance' must be in [0, 1)." in errors


def test_fractional_rarity_weight_is_reported():
    app = app_fixture()
    app.config.draw.rarity_weights = {"rare": 2.5}
    assert "Draw configuration rarity weight for 'rare' must be an integer." in validate_app(app)


def test_unknown_rarity_weight_is_reported():
    app = app_fixture()
    app.config.draw.rarity_weights = {"ultra": 3}
    assert "Draw configuration rarity weight contains invalid rarity 'ultra'." in validate_app(app)


def test_ledger_and_pity_consistency():
    config = GachaConfig(
        ledger=LedgerConfig(merge_min_quantity=1, merge_cost=2),
        pity=PityConfig(legendary_threshold=50, mythic_threshold=40),
    )
    errors = validate_app(app_fixture(config))
    assert "Ledger configuration 'merge_min_quantity' must exceed 'merge_cost'." in errors
    assert "Legendary pity threshold should not exceed the mythic threshold." in errors


def test_missing_stat_rules_are_reported():
    app = app_fixture()
    app.pools["partial"] = LocalCatalogPool(
        name="partial",
        group="Partial",
        entries=(CatalogEntry("Solo"),),
        stat_rules={Rarity.COMMON: {"hp": StatRange(1, 2)}},
    )
    assert "Pool 'partial' has no stat rules for rare, epic, legendary, mythic." in validate_app(app)


def test_missing_default_pool_is_reported():
    app = app_fixture()
    del app.pools["anime"]
    assert "Pool 'anime' is not registered." in validate_app(app)
