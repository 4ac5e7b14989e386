from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional


class OperationKind(str, Enum):
    READ = "READ"
    UPDATE = "UPDATE"
    INSERT = "INSERT"
    DELETE = "DELETE"
    SCAN = "SCAN"
    CLEANUP = "CLEANUP"

    @property
    def retryable(self) -> bool:
        return self in (OperationKind.READ, OperationKind.UPDATE, OperationKind.INSERT)


class ByteIterator(ABC):
    """
    Opaque field value handed between workloads and backends.

    Values are produced lazily, one byte at a time, so large generated
    payloads are never held in memory twice. A ByteIterator is consumed
    by reading it; ``to_bytes()`` and ``str()`` drain whatever is left.
    """

    def __iter__(self) -> "ByteIterator":
        return self

    def __next__(self) -> int:
        if not self.has_next():
            raise StopIteration
        return self.next_byte()

    @abstractmethod
    def has_next(self) -> bool:
        ...

    @abstractmethod
    def next_byte(self) -> int:
        ...

    @abstractmethod
    def bytes_left(self) -> int:
        ...

    def to_bytes(self) -> bytes:
        return bytes(self)

    def __str__(self) -> str:
        return self.to_bytes().decode("utf-8", errors="replace")


class StringByteIterator(ByteIterator):
    def __init__(self, value: str) -> None:
        self._data = value.encode("utf-8")
        self._off = 0

    def has_next(self) -> bool:
        return self._off < len(self._data)

    def next_byte(self) -> int:
        b = self._data[self._off]
        self._off += 1
        return b

    def bytes_left(self) -> int:
        return len(self._data) - self._off

    def to_bytes(self) -> bytes:
        rest = self._data[self._off:]
        self._off = len(self._data)
        return rest


class RandomByteIterator(ByteIterator):
    """Printable random bytes, generated six at a time as they are read."""

    _CHUNK = 6

    def __init__(self, length: int, rng: Optional[random.Random] = None) -> None:
        if length < 0:
            raise ValueError("length must be >= 0")
        self._len = length
        self._off = 0
        self._rng = rng or random.Random()
        self._buf = b""
        self._buf_off = 0

    def _fill(self) -> None:
        bits = self._rng.getrandbits(32)
        # Six 5-bit groups, each mapped onto the printable range ' '..'?'.
        self._buf = bytes(ord(" ") + ((bits >> (5 * i)) & 31) for i in range(self._CHUNK))
        self._buf_off = 0

    def has_next(self) -> bool:
        return self._off < self._len

    def next_byte(self) -> int:
        if self._buf_off >= len(self._buf):
            self._fill()
        b = self._buf[self._buf_off]
        self._buf_off += 1
        self._off += 1
        return b

    def bytes_left(self) -> int:
        return self._len - self._off


Record = Dict[str, ByteIterator]


def put_all_as_byte_iterators(values: Mapping[str, str]) -> Record:
    return {k: StringByteIterator(v) for k, v in values.items()}


def get_string_map(values: Mapping[str, ByteIterator]) -> Dict[str, str]:
    return {k: str(v) for k, v in values.items()}


@dataclass(frozen=True)
class AttemptResult:
    """
    Outcome of a single attempt of an operation body.

    The retry loop branches on ``ok`` instead of catching exceptions itself.
    """
    ok: bool
    error: Optional[BaseException] = None

    @classmethod
    def success(cls) -> "AttemptResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: BaseException) -> "AttemptResult":
        return cls(ok=False, error=error)


@dataclass
class Operation:
    """
    A single instrumented call against a backend.
    """
    kind: OperationKind
    max_retries: int  # attempt bound; 0 for kinds that are never retried
    body: Callable[[], None]
