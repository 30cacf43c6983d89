from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from churchapi.bootstrap import (
    ProcessBootstrap,
    ensure_initialized,
    get_bootstrap,
    get_connection_status,
)
from churchapi.config import get_settings
from churchapi.db.config_store import ConnectionConfigStore, ModuleConfigState, get_config_store
from churchapi.db.modules import ModuleKey
from churchapi.db.registry import get_registry
from churchapi.kernel.errors import FatalConfigError, ModuleUnavailableError
from tests.support.settings import production_env


@pytest.mark.unit
def test_first_call_loads_every_configured_module(make_settings):
    result = ensure_initialized(make_settings())

    assert set(result.loaded) == {m for m in ModuleKey if not m.is_alias}
    assert result.failed == {}
    assert get_config_store().get(ModuleKey.REPORTING).database == "reporting"


@pytest.mark.unit
def test_subsequent_calls_do_not_reread_configuration(make_settings):
    first = ensure_initialized(make_settings())
    second = ensure_initialized(make_settings(content_connection_string="mysql://x:y@other/elsewhere"))

    assert second is first
    assert get_bootstrap().load_count == 1
    assert get_config_store().get(ModuleKey.CONTENT).host == "db-content.internal"


@pytest.mark.unit
def test_concurrent_first_calls_load_exactly_once(make_settings):
    bootstrap = ProcessBootstrap(ConnectionConfigStore())
    settings = make_settings()

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: bootstrap.ensure_initialized(settings), range(50)))

    assert bootstrap.load_count == 1
    assert all(r is results[0] for r in results)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_first_calls_from_event_loop_workers(make_settings):
    bootstrap = ProcessBootstrap(ConnectionConfigStore())
    settings = make_settings()

    results = await asyncio.gather(
        *(asyncio.to_thread(bootstrap.ensure_initialized, settings) for _ in range(20))
    )

    assert bootstrap.load_count == 1
    assert len({id(r) for r in results}) == 1


@pytest.mark.unit
def test_missing_critical_module_is_fatal(make_settings):
    settings = make_settings(membership_connection_string=None)

    with pytest.raises(FatalConfigError) as exc_info:
        ensure_initialized(settings)

    assert exc_info.value.meta["modules"] == ["membership"]
    assert "MEMBERSHIP_CONNECTION_STRING" in exc_info.value.meta["reasons"]["membership"]


@pytest.mark.unit
def test_malformed_critical_module_is_fatal(make_settings):
    with pytest.raises(FatalConfigError, match="membership"):
        ensure_initialized(make_settings(membership_connection_string="mysql://nohost"))


@pytest.mark.unit
def test_fatal_result_is_cached_for_later_calls(make_settings):
    with pytest.raises(FatalConfigError) as first:
        ensure_initialized(make_settings(membership_connection_string=None))
    with pytest.raises(FatalConfigError) as second:
        ensure_initialized(make_settings())

    assert second.value is first.value
    assert get_bootstrap().load_count == 1


@pytest.mark.unit
def test_missing_optional_module_is_recorded_absent(make_settings):
    result = ensure_initialized(make_settings(giving_connection_string=None))

    assert ModuleKey.GIVING in result.failed
    assert get_config_store().state(ModuleKey.GIVING) is ModuleConfigState.ABSENT

    with pytest.raises(ModuleUnavailableError):
        get_registry().get("giving")


@pytest.mark.unit
def test_malformed_optional_module_does_not_abort(make_settings):
    result = ensure_initialized(make_settings(reporting_connection_string="::garbage::"))

    assert ModuleKey.REPORTING in result.failed
    assert ModuleKey.MEMBERSHIP in result.loaded
    assert get_config_store().state(ModuleKey.REPORTING) is ModuleConfigState.ABSENT


@pytest.mark.unit
def test_alias_is_loaded_when_configured(make_settings):
    result = ensure_initialized(
        make_settings(doing_membership_connection_string="mysql://doing:p@replica/membership")
    )

    assert ModuleKey.MEMBERSHIP_FOR_DOING in result.loaded
    assert get_config_store().get(ModuleKey.MEMBERSHIP_FOR_DOING).host == "replica"


@pytest.mark.unit
def test_unconfigured_alias_is_absent_but_not_a_failure(make_settings):
    result = ensure_initialized(make_settings())

    assert ModuleKey.MEMBERSHIP_FOR_DOING not in result.failed
    assert get_config_store().state(ModuleKey.MEMBERSHIP_FOR_DOING) is ModuleConfigState.ABSENT


@pytest.mark.unit
def test_reads_settings_from_environment_by_default(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "staging")
    monkeypatch.setenv("MEMBERSHIP_CONNECTION_STRING", "mysql://api:p@env-db/membership")
    get_settings.cache_clear()

    result = ensure_initialized()

    assert result.environment == "staging"
    assert result.loaded == (ModuleKey.MEMBERSHIP,)
    assert get_config_store().get(ModuleKey.MEMBERSHIP).host == "env-db"


@pytest.mark.unit
def test_hardened_mode_accepts_complete_configuration(production_settings):
    result = ensure_initialized(production_settings())
    assert result.environment == "prod"


@pytest.mark.unit
def test_hardened_mode_lists_every_placeholder_key(production_settings):
    settings = production_settings(
        jwt_secret="REPLACE_ME",
        encryption_key="",
        smtp_pass="  ",
        giving_connection_string="mysql://REPLACE_ME:x@h/giving",
    )

    with pytest.raises(FatalConfigError) as exc_info:
        ensure_initialized(settings)

    assert exc_info.value.meta["keys"] == [
        "ENCRYPTION_KEY",
        "GIVING_CONNECTION_STRING",
        "JWT_SECRET",
        "SMTP_PASS",
    ]
    for key in exc_info.value.meta["keys"]:
        assert key in exc_info.value.message
    # Validation fails before any module is loaded.
    assert get_config_store().status().present == frozenset()


@pytest.mark.unit
def test_hardened_mode_rejects_reserved_api_url(production_settings):
    with pytest.raises(FatalConfigError) as exc_info:
        ensure_initialized(production_settings(api_url="https://api.churchapps.org"))
    assert exc_info.value.meta["keys"] == ["API_URL"]


@pytest.mark.unit
def test_hardened_mode_requires_smtp_mail(production_settings):
    with pytest.raises(FatalConfigError) as exc_info:
        ensure_initialized(production_settings(mail_system="SES"))
    assert exc_info.value.meta["keys"] == ["MAIL_SYSTEM"]


@pytest.mark.unit
def test_placeholders_are_ignored_outside_hardened_mode(make_settings):
    result = ensure_initialized(make_settings(jwt_secret="REPLACE_ME", mail_system="SES"))
    assert result.environment == "test"


@pytest.mark.unit
def test_connection_status_counts_primary_modules_only(make_settings):
    ensure_initialized(
        make_settings(
            giving_connection_string=None,
            doing_membership_connection_string="mysql://doing:p@replica/membership",
        )
    )

    status = get_connection_status()

    assert status["total"] == 7
    assert status["missing"] == ["giving"]
    assert "membership-for-doing" not in status["loaded"]
    assert len(status["loaded"]) == 6


def _set_env(monkeypatch, values):
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()


@pytest.mark.unit
def test_hardened_mode_passes_with_complete_environment(monkeypatch):
    _set_env(monkeypatch, production_env())

    assert ensure_initialized().environment == "prod"


@pytest.mark.unit
def test_hardened_mode_reports_keys_left_to_defaults(monkeypatch):
    _set_env(monkeypatch, production_env(API_URL=None, SERVER_PORT=None, SUPPORT_EMAIL=None))

    with pytest.raises(FatalConfigError) as exc_info:
        ensure_initialized()

    assert exc_info.value.meta["keys"] == ["API_URL", "SERVER_PORT", "SUPPORT_EMAIL"]


@pytest.mark.unit
def test_defaults_still_apply_outside_hardened_mode(monkeypatch):
    _set_env(monkeypatch, production_env(ENVIRONMENT="staging", API_URL=None, SUPPORT_EMAIL=None))

    assert ensure_initialized().environment == "staging"
    assert get_settings().api_url == "http://localhost:8084"


@pytest.mark.unit
def test_unparsable_setting_is_fatal_and_cached(monkeypatch):
    _set_env(monkeypatch, production_env(SERVER_PORT="REPLACE_ME"))

    with pytest.raises(FatalConfigError) as first:
        ensure_initialized()
    with pytest.raises(FatalConfigError) as second:
        ensure_initialized()

    assert first.value.meta["keys"] == ["SERVER_PORT"]
    assert second.value is first.value
    assert get_bootstrap().load_count == 0


@pytest.mark.unit
def test_environment_name_is_case_insensitive(monkeypatch):
    _set_env(monkeypatch, production_env(ENVIRONMENT="PROD", JWT_SECRET="REPLACE_ME"))

    with pytest.raises(FatalConfigError) as exc_info:
        ensure_initialized()

    assert get_settings().environment == "prod"
    assert exc_info.value.meta["keys"] == ["JWT_SECRET"]
