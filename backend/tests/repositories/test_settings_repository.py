"""System settings: defaults overlay, JSON values and per-key audit rows."""

from studiobook.models.system_setting import DEFAULT_SYSTEM_SETTINGS
from studiobook.repositories.settings_repository import SettingsRepository


def test_defaults_are_seeded(settings_repository):
    values = settings_repository.get_system_settings()

    assert values["site_name"] == "Cerita Kita"
    assert set(DEFAULT_SYSTEM_SETTINGS) <= set(values)


def test_update_writes_one_audit_row_per_key(settings_repository):
    settings_repository.update_system_settings(
        {"site_name": "Studio Senja", "business_phone": "+62 811 0000 0000"},
        updated_by="owner",
    )

    audit = settings_repository.get_settings_audit()

    assert len(audit) == 2
    by_key = {row["key"]: row for row in audit}
    assert by_key["site_name"]["old_value"] == "Cerita Kita"
    assert by_key["site_name"]["new_value"] == "Studio Senja"
    assert by_key["business_phone"]["updated_by"] == "owner"
    assert settings_repository.get_system_setting("site_name") == "Studio Senja"


def test_new_keys_are_inserted(settings_repository):
    settings_repository.update_system_settings({"instagram_handle": "@ceritakita"})

    assert settings_repository.get_system_setting("instagram_handle") == "@ceritakita"
    assert settings_repository.get_settings_audit(key="instagram_handle")[0]["old_value"] is None


def test_json_settings_round_trip(settings_repository):
    settings_repository.update_system_settings({"invoice": {"footer": "Terima kasih", "tax": 11}})

    assert settings_repository.get_system_settings()["invoice"] == {"footer": "Terima kasih", "tax": 11}
    assert settings_repository.get_system_setting("invoice") == '{"footer": "Terima kasih", "tax": 11}'


def test_malformed_json_setting_reads_as_empty_object(pool, settings_repository):
    pool.execute("INSERT INTO system_settings (key, value) VALUES ('seo', '{not json')")

    assert settings_repository.get_system_settings()["seo"] == {}


def test_cache_is_per_instance_and_invalidated_on_write(pool, settings_repository):
    other = SettingsRepository(pool)
    assert other.get_system_setting("site_name") == "Cerita Kita"

    settings_repository.update_system_settings({"site_name": "Baru"})

    assert settings_repository.get_system_setting("site_name") == "Baru"
    assert other.get_system_setting("site_name") == "Cerita Kita"
    other.invalidate_cache()
    assert other.get_system_setting("site_name") == "Baru"


def test_initialize_adds_only_missing_defaults(pool, settings_repository):
    pool.execute("DELETE FROM system_settings WHERE key = 'site_logo'")

    assert settings_repository.initialize_system_settings() == 1
    assert settings_repository.initialize_system_settings() == 0


def test_updates_reach_the_audit_log(settings_repository, audit_repository):
    settings_repository.update_system_settings({"site_name": "Studio Senja"}, updated_by="owner")

    rows, total = audit_repository.list(entity_type="system_settings")

    assert total == 1
    assert rows[0].entity_id == "site_name"
    assert rows[0].details["new_value"] == "Studio Senja"
