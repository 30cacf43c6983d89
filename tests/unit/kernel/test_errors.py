from __future__ import annotations

import pytest

from churchapi.kernel.errors import (
    ApiError,
    FatalConfigError,
    ModuleUnavailableError,
    NoActiveContextError,
    UnknownModuleError,
)


@pytest.mark.unit
def test_error_code_must_be_dotted_lowercase():
    with pytest.raises(ValueError):
        ApiError(code="Bad Code", message="x")


@pytest.mark.unit
def test_public_dict_includes_meta_and_request_id():
    err = ModuleUnavailableError(message="no giving db", meta={"module": "giving"})

    assert err.status_code == 503
    assert err.to_public_dict(request_id="req_1") == {
        "detail": "no giving db",
        "code": "module.unavailable",
        "request_id": "req_1",
        "meta": {"module": "giving"},
    }


@pytest.mark.unit
def test_public_dict_omits_empty_meta():
    assert NoActiveContextError().to_public_dict() == {
        "detail": "No active module context",
        "code": "module.no_active_context",
    }


@pytest.mark.unit
@pytest.mark.parametrize(
    "error_cls, code",
    [
        (FatalConfigError, "config.fatal"),
        (NoActiveContextError, "module.no_active_context"),
        (UnknownModuleError, "module.unknown"),
    ],
)
def test_subclasses_are_api_errors(error_cls, code):
    err = error_cls()
    assert isinstance(err, ApiError)
    assert err.code == code
    assert str(err) == err.message


@pytest.mark.unit
def test_module_comes_from_meta():
    assert ModuleUnavailableError(meta={"module": "giving"}).module == "giving"
    assert FatalConfigError().module is None


@pytest.mark.unit
def test_log_fields_carry_code_and_meta():
    err = ModuleUnavailableError(message="no giving db", meta={"module": "giving"})

    assert err.log_fields() == {
        "error": "no giving db",
        "error_code": "module.unavailable",
        "error_meta": {"module": "giving"},
    }
    assert "error_meta" not in NoActiveContextError().log_fields()
