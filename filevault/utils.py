"""Utility functions for the Filevault service."""

import dataclasses
import datetime
import os
import time
import typing
from typing import Any
from typing import Callable
from typing import TypeVar


T = TypeVar("T")


def env(key: str, convert: Callable[[str], T] = typing.cast(Callable[[str], T], str), **kwargs: Any) -> T:
    """Load a value from environment variables with optional default and type conversion."""
    key, partition, default = key.partition(":")

    def default_factory(
        key_val: str = key, default_val: str = default, convert_func: Callable[[str], T] = convert
    ) -> T:
        if key_val in os.environ:
            return convert_func(os.environ[key_val])

        if partition == ":":
            return convert_func(default_val)

        raise KeyError(key_val)

    return typing.cast(T, dataclasses.field(default_factory=default_factory, **kwargs))


def as_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def now_millis() -> int:
    """Wall clock as integer epoch milliseconds."""
    return time.time_ns() // 1_000_000


def millis_to_iso(value: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC timestamp."""
    moment = datetime.datetime.fromtimestamp(value / 1000, tz=datetime.timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
