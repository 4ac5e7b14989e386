from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping, Optional

from .models import ByteIterator


class DB(ABC):
    """
    Abstract base for storage backends driven by the benchmark.

    One instance is used by exactly one worker thread at a time, so
    implementations need no locking for per-instance state. Resources shared
    between instances (connection pools and the like) must synchronize
    themselves.

    Results are written into the caller-supplied ``result`` container.
    Failure is signalled by raising; callers only distinguish "raised" from
    "returned".
    """

    def __init__(self, properties: Optional[Mapping[str, str]] = None) -> None:
        self._properties: Dict[str, str] = dict(properties or {})

    @property
    def properties(self) -> Dict[str, str]:
        return self._properties

    def new_instance(self) -> "DB":
        """
        Build a fresh, uninitialised instance of the same backend with the same
        configuration. Used to hot-swap a backend that only recovers by a full
        reconnect.
        """
        return type(self)(self.properties)

    def init(self) -> None:
        """Called once per instance, before any operation."""

    def cleanup(self) -> None:
        """Called once per instance, after the last operation."""

    @abstractmethod
    def read_all(self, table: str, key: str, result: Dict[str, ByteIterator]) -> None:
        """Read every field of the record into ``result``."""
        ...

    @abstractmethod
    def read_one(
        self, table: str, key: str, field: str, result: Dict[str, ByteIterator]
    ) -> None:
        """Read a single field of the record into ``result``."""
        ...

    @abstractmethod
    def scan_all(
        self,
        table: str,
        start_key: str,
        record_count: int,
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        """Append up to ``record_count`` records starting at ``start_key`` (inclusive)."""
        ...

    @abstractmethod
    def scan_one(
        self,
        table: str,
        start_key: str,
        record_count: int,
        field: str,
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        """Like ``scan_all`` but each record carries only ``field``."""
        ...

    @abstractmethod
    def update_all(self, table: str, key: str, values: Mapping[str, ByteIterator]) -> None:
        """Overwrite the given fields; fields not listed are left untouched."""
        ...

    @abstractmethod
    def update_one(self, table: str, key: str, field: str, value: ByteIterator) -> None:
        ...

    @abstractmethod
    def insert(self, table: str, key: str, values: Mapping[str, ByteIterator]) -> None:
        """Create the record, replacing any existing one."""
        ...

    @abstractmethod
    def delete(self, table: str, key: str) -> None:
        ...

    def scan(
        self,
        table: str,
        start_key: str,
        record_count: int,
        fields: Optional[Iterable[str]],
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        """
        Scan with an optional field set. ``None`` means all fields.

        Backends with a native multi-field scan may override this; the
        default narrows an all-fields scan.
        """
        if fields is None:
            self.scan_all(table, start_key, record_count, result)
            return

        wanted = list(dict.fromkeys(fields))
        if len(wanted) == 1:
            self.scan_one(table, start_key, record_count, wanted[0], result)
            return

        start = len(result)
        self.scan_all(table, start_key, record_count, result)
        for i in range(start, len(result)):
            result[i] = {f: v for f, v in result[i].items() if f in wanted}
