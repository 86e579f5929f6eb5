from dataclasses import dataclass, fields, replace
from typing import Optional, Union

TimeoutTypes = Union["Timeout", float, int, None]


@dataclass(frozen=True)
class Timeout:
    """
    Per-phase time limits in seconds. ``None`` waits indefinitely.

    ``total`` bounds connect + write + response head; ``read`` also bounds
    every read made while the body is drained.
    """

    total: Optional[float] = None
    connect: Optional[float] = None
    read: Optional[float] = None
    write: Optional[float] = None

    @classmethod
    def from_value(cls, value: TimeoutTypes) -> "Timeout":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls()
        seconds = float(value)
        if seconds <= 0:
            raise ValueError(f"Timeout must be positive, got {value!r}")
        return cls(total=seconds, connect=seconds, read=seconds, write=seconds)

    def merge(self, default: Optional["Timeout"]) -> "Timeout":
        """Fill the limits left unset here from ``default``."""
        if default is None:
            return self
        overrides = {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}
        return replace(default, **overrides)
