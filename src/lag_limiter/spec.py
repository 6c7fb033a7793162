"""
Replica wait spec: parsing and validation of ``key=value`` tokens.

Usage:
    from lag_limiter.spec import validate_spec

    spec = validate_spec(["max=1", "timeout=600", "continue=yes"])
    spec.max, spec.timeout, spec.continue_on_timeout  # (1, 600, True)
"""

from __future__ import annotations

from typing import Literal, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import (
    EmptySpec,
    InvalidContinueValue,
    MalformedToken,
    MissingMax,
    NonIntegerValue,
    UnknownKey,
)

SPEC_KEYS = ("max", "timeout", "continue")


class WaitSpec(BaseModel):
    """How long and how hard to wait for replicas.

    Attributes:
        max: Max acceptable replica lag in seconds
        timeout: Seconds to wait for all replicas before giving up
        check: Seconds to sleep between lag checks
        continue_: "yes" to return success on timeout, "no" to fail
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max: int = Field(..., gt=0)
    timeout: int = Field(3600, gt=0)
    check: int = Field(1, gt=0)
    continue_: Literal["yes", "no"] = Field("no", alias="continue")

    @field_validator("continue_", mode="before")
    @classmethod
    def _lower_continue(cls, v):
        return v.lower() if isinstance(v, str) else v

    @property
    def continue_on_timeout(self) -> bool:
        return self.continue_ == "yes"


def _split(token: str) -> tuple[str, str]:
    key, _, val = token.partition("=")
    if not key or not val:
        raise MalformedToken(
            f"invalid spec format, should be option=value: {token}", token=token
        )
    return key.lower(), val


def validate_spec(tokens: Sequence[str], *, check: int = 1) -> WaitSpec:
    """Validate ``key=value`` tokens and build a WaitSpec.

    Args:
        tokens: Ordered tokens, e.g. ``["max=1", "timeout=60"]``
        check: Poll interval in seconds (not settable through tokens)

    Returns:
        Immutable WaitSpec with defaults applied

    Raises:
        EmptySpec, MalformedToken, UnknownKey, NonIntegerValue,
        InvalidContinueValue, MissingMax
    """
    if not tokens:
        raise EmptySpec("spec requires at least a max value")

    values: dict[str, str | int] = {}
    for token in tokens:
        key, val = _split(token)
        if key not in SPEC_KEYS:
            raise UnknownKey(f"unknown option in spec: {token}", token=token)
        if key == "continue":
            if val.lower() not in ("yes", "no"):
                raise InvalidContinueValue(
                    f'value for {key} must be "yes" or "no": {token}', token=token
                )
            values[key] = val.lower()
            continue
        if not val.isdigit() or not val.isascii() or int(val) == 0:
            raise NonIntegerValue(f"value must be a positive integer: {token}", token=token)
        values[key] = int(val)

    if "max" not in values:
        raise MissingMax("max must be specified")

    spec = WaitSpec(check=check, **values)
    logger.debug(
        f"Wait spec: max={spec.max}s timeout={spec.timeout}s "
        f"check={spec.check}s continue={spec.continue_}"
    )
    return spec
