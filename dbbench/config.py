from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError

READ_RETRY_PROPERTY = "readretrycount"
UPDATE_RETRY_PROPERTY = "updateretrycount"
INSERT_RETRY_PROPERTY = "insertretrycount"
RETRY_DELAY_PROPERTY = "retrydelay"

VERBOSE_PROPERTY = "basicdb.verbose"
SIMULATE_DELAY_PROPERTY = "basicdb.simulatedelay"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def _int_property(props: Mapping[str, str], name: str, default: int) -> int:
    raw = props.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _bool_property(props: Mapping[str, str], name: str, default: bool) -> bool:
    raw = props.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    value = str(raw).strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class WrapperConfig:
    read_retry_count: int = 0
    update_retry_count: int = 0
    insert_retry_count: int = 0
    retry_delay_ms: int = 0

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        for name in (
            "read_retry_count",
            "update_retry_count",
            "insert_retry_count",
            "retry_delay_ms",
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")

    @classmethod
    def from_properties(cls, props: Optional[Mapping[str, str]] = None) -> "WrapperConfig":
        props = props or {}
        return cls(
            read_retry_count=_int_property(props, READ_RETRY_PROPERTY, 0),
            update_retry_count=_int_property(props, UPDATE_RETRY_PROPERTY, 0),
            insert_retry_count=_int_property(props, INSERT_RETRY_PROPERTY, 0),
            retry_delay_ms=_int_property(props, RETRY_DELAY_PROPERTY, 0),
        )


@dataclass
class BasicDbConfig:
    """
    Settings of the console reference backend.

    ``basicdb.verbose`` accepts true/false/1/0/yes/no/on/off in any case;
    anything else raises ``ConfigurationError`` at ``init()`` rather than
    being read as false.
    """
    verbose: bool = True
    simulated_delay_ms: int = 0

    def __post_init__(self) -> None:
        if self.simulated_delay_ms < 0:
            raise ConfigurationError("simulated_delay_ms must be >= 0")

    @classmethod
    def from_properties(cls, props: Optional[Mapping[str, str]] = None) -> "BasicDbConfig":
        props = props or {}
        return cls(
            verbose=_bool_property(props, VERBOSE_PROPERTY, True),
            simulated_delay_ms=_int_property(props, SIMULATE_DELAY_PROPERTY, 0),
        )
