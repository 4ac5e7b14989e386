from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .base import DB
from .models import AttemptResult, ByteIterator, Operation, OperationKind
from ..config import WrapperConfig
from ..errors import OperationFailure, TerminalFailure
from ..metrics.measurements import MeasurementSink

logger = logging.getLogger(__name__)


def _now_us() -> int:
    return time.monotonic_ns() // 1000


def _require(value: str, name: str) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string, got {type(value).__name__}")
    if not value:
        raise ValueError(f"{name} cannot be empty")


class DBWrapper(DB):
    """
    Wraps a backend, measuring every call and retrying the retryable ones.

    READ, UPDATE and INSERT go through the retry loop:

    - Before each attempt the loop checks ``attempts >= max_retries`` and
      stops if so. ``max_retries = N`` therefore allows at most N attempts,
      and ``N = 0`` (the default) allows none: the backend is never called.
    - ``retry_delay_ms`` is slept before every attempt, the first included.
    - A failed attempt is logged and counted, never raised. The call returns
      normally whether or not an attempt succeeded; the outcome is visible
      only through the reported retry count.

    DELETE, SCAN and CLEANUP run exactly once. A backend error is re-raised
    as ``TerminalFailure``.

    Every invocation reports exactly one latency sample and one return code
    to the sink, and retryable invocations one retry count. Latency spans the
    whole call, retries and delays included.

    A wrapper owns one backend at a time and, like the backend, must only be
    used by one worker thread.
    """

    def __init__(
        self,
        db: DB,
        measurements: MeasurementSink,
        config: Optional[WrapperConfig] = None,
    ) -> None:
        super().__init__()
        self._db = db
        self.measurements = measurements
        self.config = config if config is not None else WrapperConfig.from_properties(db.properties)

    @property
    def db(self) -> DB:
        return self._db

    @property
    def properties(self) -> Dict[str, str]:
        return self._db.properties

    def new_instance(self) -> "DBWrapper":
        return DBWrapper(self._db.new_instance(), self.measurements, self.config)

    def max_retries(self, kind: OperationKind) -> int:
        if not kind.retryable:
            return 0
        if kind == OperationKind.READ:
            return self.config.read_retry_count
        if kind == OperationKind.UPDATE:
            return self.config.update_retry_count
        return self.config.insert_retry_count

    # -- lifecycle -------------------------------------------------------

    def init(self) -> None:
        self._db.init()

    def reinit(self) -> None:
        """
        Replace the backend with a freshly built one of the same class and
        configuration. Accumulated measurements are untouched and the swap
        itself is not measured.
        """
        old = self._db
        old.cleanup()
        new = old.new_instance()
        # The retired backend is never referenced again, even if init fails.
        self._db = new
        new.init()
        logger.info("Reinitialised backend %s", type(new).__name__)

    def cleanup(self) -> None:
        self._timed(OperationKind.CLEANUP, self._db.cleanup)

    # -- retryable -------------------------------------------------------

    def read_all(self, table: str, key: str, result: Dict[str, ByteIterator]) -> None:
        _require(table, "table")
        _require(key, "key")
        self._retrying(OperationKind.READ, lambda: self._db.read_all(table, key, result))

    def read_one(
        self, table: str, key: str, field: str, result: Dict[str, ByteIterator]
    ) -> None:
        _require(table, "table")
        _require(key, "key")
        _require(field, "field")
        self._retrying(
            OperationKind.READ, lambda: self._db.read_one(table, key, field, result)
        )

    def update_all(self, table: str, key: str, values: Mapping[str, ByteIterator]) -> None:
        _require(table, "table")
        _require(key, "key")
        self._retrying(OperationKind.UPDATE, lambda: self._db.update_all(table, key, values))

    def update_one(self, table: str, key: str, field: str, value: ByteIterator) -> None:
        _require(table, "table")
        _require(key, "key")
        _require(field, "field")
        self._retrying(
            OperationKind.UPDATE, lambda: self._db.update_one(table, key, field, value)
        )

    def insert(self, table: str, key: str, values: Mapping[str, ByteIterator]) -> None:
        _require(table, "table")
        _require(key, "key")
        self._retrying(OperationKind.INSERT, lambda: self._db.insert(table, key, values))

    # -- timed only ------------------------------------------------------

    def delete(self, table: str, key: str) -> None:
        _require(table, "table")
        _require(key, "key")
        self._timed(OperationKind.DELETE, lambda: self._db.delete(table, key))

    def scan_all(
        self,
        table: str,
        start_key: str,
        record_count: int,
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        self._timed(
            OperationKind.SCAN,
            lambda: self._db.scan_all(table, start_key, record_count, result),
        )

    def scan_one(
        self,
        table: str,
        start_key: str,
        record_count: int,
        field: str,
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        self._timed(
            OperationKind.SCAN,
            lambda: self._db.scan_one(table, start_key, record_count, field, result),
        )

    def scan(
        self,
        table: str,
        start_key: str,
        record_count: int,
        fields: Optional[Iterable[str]],
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        self._timed(
            OperationKind.SCAN,
            lambda: self._db.scan(table, start_key, record_count, fields, result),
        )

    # -- protocol --------------------------------------------------------

    def _retrying(self, kind: OperationKind, body: Callable[[], None]) -> None:
        self._run(Operation(kind=kind, max_retries=self.max_retries(kind), body=body))

    @staticmethod
    def _attempt(op: Operation) -> AttemptResult:
        try:
            op.body()
        except Exception as exc:
            failure = OperationFailure(f"{op.kind.value} failed: {exc}")
            failure.__cause__ = exc
            return AttemptResult.failure(failure)
        return AttemptResult.success()

    def _delay(self) -> None:
        if self.config.retry_delay_ms > 0:
            time.sleep(self.config.retry_delay_ms / 1000.0)

    def _run(self, op: Operation) -> None:
        start = _now_us()
        attempts = 0

        while attempts < op.max_retries:
            self._delay()
            outcome = self._attempt(op)
            if outcome.ok:
                break

            logger.warning(
                "%s attempt %d/%d failed: %s",
                op.kind.value,
                attempts + 1,
                op.max_retries,
                outcome.error,
                exc_info=outcome.error.__cause__,
            )
            attempts += 1
            if attempts < op.max_retries:
                logger.info("Retrying for %d/%d attempt.", attempts, op.max_retries)

        elapsed = _now_us() - start
        self.measurements.measure(op.kind, elapsed)
        self.measurements.report_retry_count(op.kind, attempts)
        self.measurements.report_return_code(op.kind)

    def _timed(self, kind: OperationKind, body: Callable[[], None]) -> None:
        start = _now_us()
        try:
            body()
        except Exception as exc:
            logger.error("%s failed: %s", kind.value, exc, exc_info=exc)
            raise TerminalFailure(f"{kind.value} failed: {exc}") from exc
        finally:
            elapsed = _now_us() - start
            self.measurements.measure(kind, elapsed)
            self.measurements.report_return_code(kind)
