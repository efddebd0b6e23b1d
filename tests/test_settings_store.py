from decimal import Decimal

import pytest

from cab_ledger import db
from cab_ledger.config import (
    DEFAULT_SETTINGS,
    STORAGE_KEYS,
    deep_merge,
    load_settings_file,
    settings_from_dict,
    settings_to_dict,
)
from cab_ledger.repositories import KeyValueRepository
from cab_ledger.services import SettingsService


def test_deep_merge_fills_fields_missing_from_stored_groups():
    defaults = {"currency": "₹", "logic": {"share": "60", "fine_rate": "2"}}
    stored = {"logic": {"share": "55"}, "stale_key": True}

    merged = deep_merge(defaults, stored)

    assert merged == {"currency": "₹", "logic": {"share": "55", "fine_rate": "2"}}


def test_deep_merge_ignores_non_mapping_group():
    defaults = {"logic": {"share": "60"}}
    assert deep_merge(defaults, {"logic": "broken"}) == defaults
    assert deep_merge(defaults, None) == defaults


def test_settings_saved_before_logic_existed_get_default_logic():
    old_document = {"currency_symbol": "Rs", "tariffs": {"one_way": {"rate_per_km": 40}}}

    settings = settings_from_dict(old_document)

    assert settings.currency_symbol == "Rs"
    assert settings.tariffs.one_way.rate_per_km == Decimal("40")
    assert settings.tariffs.city == DEFAULT_SETTINGS.tariffs.city
    assert settings.logic == DEFAULT_SETTINGS.logic


def test_settings_round_trip_through_dict():
    changed = DEFAULT_SETTINGS.with_logic(target_yield="21.5")
    assert settings_from_dict(settings_to_dict(changed)) == changed


def test_unknown_setting_field_is_rejected():
    with pytest.raises(KeyError):
        DEFAULT_SETTINGS.with_tariff("city", surge_multiplier=2)
    with pytest.raises(KeyError):
        DEFAULT_SETTINGS.with_tariff("airport", rate_per_km=2)


def test_load_settings_file_overlays_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "tariffs:\n  multi_day:\n    night_bata_amount: 500\nlogic:\n  fine_rate: 3\n",
        encoding="utf-8",
    )

    settings = load_settings_file(path)

    assert settings.tariffs.multi_day.night_bata_amount == Decimal("500")
    assert settings.tariffs.multi_day.daily_rent_amount == Decimal("2800")
    assert settings.logic.fine_rate == Decimal("3")


def test_load_settings_file_rejects_non_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings_file(path)


def test_store_returns_default_for_absent_or_corrupt_keys():
    conn = db.initialize()
    store = KeyValueRepository(conn)

    assert store.load("missing", ["fallback"]) == ["fallback"]

    with conn:
        conn.execute("INSERT INTO kv_store(key, value) VALUES (?, ?)", ("broken", "{not json"))
    assert store.load("broken", []) == []


def test_settings_service_updates_and_resets():
    conn = db.initialize()
    service = SettingsService(conn)

    assert service.current() == DEFAULT_SETTINGS

    service.update_tariff("round_trip", rate_per_km=22)
    service.update_logic(uber_driver_share=55)
    current = SettingsService(conn).current()
    assert current.tariffs.round_trip.rate_per_km == Decimal("22")
    assert current.logic.uber_driver_share == Decimal("55")

    assert service.reset_defaults() == DEFAULT_SETTINGS
    assert service.current() == DEFAULT_SETTINGS


def test_seed_only_writes_into_an_empty_store():
    conn = db.initialize()
    service = SettingsService(conn)
    seeded = DEFAULT_SETTINGS.with_logic(target_yield=20)

    assert service.seed(seeded) is True
    assert service.seed(DEFAULT_SETTINGS) is False
    assert service.current().logic.target_yield == Decimal("20")
    assert KeyValueRepository(conn).load(STORAGE_KEYS["settings"], None) is not None


def test_unparseable_stored_setting_keeps_its_default():
    settings = settings_from_dict(
        {"logic": {"target_yield": "abc", "fine_rate": "3"}, "tariffs": {"city": {"extra_km_rate": None}}}
    )

    assert settings.logic.target_yield == Decimal("19")
    assert settings.logic.fine_rate == Decimal("3")
    assert settings.tariffs.city.extra_km_rate == DEFAULT_SETTINGS.tariffs.city.extra_km_rate
