from __future__ import annotations

import io
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Mapping, Optional

import pytest

from dbbench.db.base import DB
from dbbench.db.basic import BasicDB
from dbbench.db.models import ByteIterator, StringByteIterator
from dbbench.errors import DbError
from dbbench.metrics.measurements import Measurements


class MemoryDB(DB):
    """
    In-memory backend with real record semantics.

    Values are stored as bytes so a drained ByteIterator never leaks into
    the stored state.
    """

    def __init__(self, properties: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(properties)
        self.tables: Dict[str, Dict[str, Dict[str, bytes]]] = defaultdict(dict)
        self.init_calls = 0
        self.cleanup_calls = 0

    def init(self) -> None:
        self.init_calls += 1

    def cleanup(self) -> None:
        self.cleanup_calls += 1

    def _record(self, table: str, key: str) -> Dict[str, bytes]:
        try:
            return self.tables[table][key]
        except KeyError:
            raise DbError(f"no record {table}/{key}") from None

    def read_all(self, table, key, result) -> None:
        result.update(self._as_values(self._record(table, key)))

    def read_one(self, table, key, field, result) -> None:
        record = self._record(table, key)
        if field in record:
            result.update(self._as_values({field: record[field]}))

    def _ordered_keys(self, table: str, start_key: str, record_count: int) -> List[str]:
        return [k for k in sorted(self.tables[table]) if k >= start_key][:record_count]

    def scan_all(self, table, start_key, record_count, result) -> None:
        for k in self._ordered_keys(table, start_key, record_count):
            result.append(self._as_values(self.tables[table][k]))

    def scan_one(self, table, start_key, record_count, field, result) -> None:
        for k in self._ordered_keys(table, start_key, record_count):
            record = self.tables[table][k]
            result.append(self._as_values({field: record[field]} if field in record else {}))

    def update_all(self, table, key, values) -> None:
        record = self._record(table, key)
        for f, v in values.items():
            record[f] = v.to_bytes()

    def update_one(self, table, key, field, value) -> None:
        self._record(table, key)[field] = value.to_bytes()

    def insert(self, table, key, values) -> None:
        self.tables[table][key] = {f: v.to_bytes() for f, v in values.items()}

    def delete(self, table, key) -> None:
        self._record(table, key)
        del self.tables[table][key]

    @staticmethod
    def _as_values(record: Mapping[str, bytes]) -> Dict[str, ByteIterator]:
        return {f: StringByteIterator(v.decode("utf-8")) for f, v in record.items()}


class FlakyDB(DB):
    """
    Backend whose data operations fail until ``failures`` calls have been made.

    ``failures=None`` fails forever. ``calls`` counts attempts per method.
    """

    def __init__(
        self,
        properties: Optional[Mapping[str, str]] = None,
        failures: Optional[int] = None,
    ) -> None:
        super().__init__(properties)
        self.failures = failures
        self.calls: Dict[str, int] = defaultdict(int)

    def new_instance(self) -> "FlakyDB":
        return FlakyDB(self.properties, failures=self.failures)

    def _call(self, name: str) -> None:
        self.calls[name] += 1
        if self.failures is None or self.calls[name] <= self.failures:
            raise DbError(f"{name} unavailable")

    def read_all(self, table, key, result) -> None:
        self._call("read_all")

    def read_one(self, table, key, field, result) -> None:
        self._call("read_one")

    def scan_all(self, table, start_key, record_count, result) -> None:
        self._call("scan_all")

    def scan_one(self, table, start_key, record_count, field, result) -> None:
        self._call("scan_one")

    def update_all(self, table, key, values) -> None:
        self._call("update_all")

    def update_one(self, table, key, field, value) -> None:
        self._call("update_one")

    def insert(self, table, key, values) -> None:
        self._call("insert")

    def delete(self, table, key) -> None:
        self._call("delete")

    def cleanup(self) -> None:
        self.calls["cleanup"] += 1


class RecordingSink:
    """MeasurementSink that keeps every call, for exact-count assertions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.latencies: List[tuple] = []
        self.return_codes: List[str] = []
        self.retries: List[tuple] = []

    def measure(self, kind, elapsed_us: int) -> None:
        with self._lock:
            self.latencies.append((kind.value, elapsed_us))

    def report_return_code(self, kind) -> None:
        with self._lock:
            self.return_codes.append(kind.value)

    def report_retry_count(self, kind, count: int) -> None:
        with self._lock:
            self.retries.append((kind.value, count))


@pytest.fixture
def measurements() -> Measurements:
    """A fresh aggregator with its own registry per test."""
    return Measurements()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def memory_db() -> MemoryDB:
    return MemoryDB()


@pytest.fixture
def console() -> io.StringIO:
    """Captures BasicDB output."""
    return io.StringIO()


@pytest.fixture
def basic_db(console: io.StringIO) -> BasicDB:
    db = BasicDB({"basicdb.verbose": "true"}, out=console)
    db.init()
    console.truncate(0)
    console.seek(0)
    return db


@pytest.fixture
def flaky_db_factory() -> Callable[..., FlakyDB]:
    """
    Factory fixture creating FlakyDB backends.

    Usage:
        db = flaky_db_factory(failures=2)           # fails twice per method, then succeeds
        db = flaky_db_factory({"retrydelay": "5"})   # fails forever
    """

    def _create(
        properties: Optional[Mapping[str, str]] = None, failures: Optional[int] = None
    ) -> FlakyDB:
        return FlakyDB(properties, failures=failures)

    return _create


@pytest.fixture
def memory_db_factory() -> Callable[..., MemoryDB]:
    return MemoryDB
