"""
Unit tests for wait spec validation.
"""

import pytest
from pydantic import ValidationError

from lag_limiter.errors import (
    EmptySpec,
    InvalidContinueValue,
    MalformedToken,
    MissingMax,
    NonIntegerValue,
    SpecError,
    UnknownKey,
)
from lag_limiter.spec import WaitSpec, validate_spec


def test_max_only_uses_defaults():
    """Only max given: timeout, check and continue take their defaults."""
    spec = validate_spec(["max=1"])
    assert spec.model_dump(by_alias=True) == {
        "max": 1,
        "timeout": 3600,
        "check": 1,
        "continue": "no",
    }
    assert not spec.continue_on_timeout


def test_all_keys():
    spec = validate_spec(["max=3", "timeout=60", "continue=yes"])
    assert spec.max == 3
    assert spec.timeout == 60
    assert spec.continue_ == "yes"
    assert spec.continue_on_timeout


def test_keys_and_continue_are_case_insensitive():
    """Keys are lower-cased; continue accepts YES/No."""
    spec = validate_spec(["MAX=2", "Timeout=5", "CONTINUE=YES"])
    assert (spec.max, spec.timeout, spec.continue_) == (2, 5, "yes")


def test_check_is_passed_separately():
    spec = validate_spec(["max=1"], check=5)
    assert spec.check == 5


def test_last_duplicate_wins():
    assert validate_spec(["max=1", "max=4"]).max == 4


def test_empty_spec():
    with pytest.raises(EmptySpec):
        validate_spec([])


@pytest.mark.parametrize("token", ["max", "max=", "=1", "=", ""])
def test_malformed_token(token):
    """Tokens without both a key and a value are rejected."""
    with pytest.raises(MalformedToken) as exc_info:
        validate_spec([token])
    assert exc_info.value.token == token


def test_unknown_key():
    """An unknown key fails even when max is present."""
    with pytest.raises(UnknownKey) as exc_info:
        validate_spec(["foo=1", "max=1"])
    assert exc_info.value.token == "foo=1"
    assert "unknown option" in str(exc_info.value)


def test_check_is_not_a_spec_key():
    with pytest.raises(UnknownKey):
        validate_spec(["max=1", "check=2"])


@pytest.mark.parametrize("token", ["max=abc", "max=1.5", "timeout=-1", "max=0", "timeout=1=2"])
def test_non_integer_value(token):
    with pytest.raises(NonIntegerValue):
        validate_spec([token] if token.startswith("max") else ["max=1", token])


@pytest.mark.parametrize("token", ["continue=maybe", "continue=1", "continue=yess"])
def test_invalid_continue_value(token):
    with pytest.raises(InvalidContinueValue):
        validate_spec(["max=1", token])


def test_missing_max():
    with pytest.raises(MissingMax):
        validate_spec(["timeout=10"])


def test_spec_errors_are_value_errors():
    """Callers can catch SpecError or plain ValueError."""
    with pytest.raises(ValueError):
        validate_spec([])
    assert issubclass(UnknownKey, SpecError)


def test_wait_spec_is_immutable():
    spec = validate_spec(["max=1"])
    with pytest.raises(ValidationError):
        spec.max = 5  # type: ignore


def test_wait_spec_direct_construction_validates():
    """Programmatic construction enforces positive integers."""
    with pytest.raises(ValidationError):
        WaitSpec(max=0)
    with pytest.raises(ValidationError):
        WaitSpec(max=1, check=0)
    assert WaitSpec(max=1, **{"continue": "YES"}).continue_ == "yes"
