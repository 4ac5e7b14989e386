from __future__ import annotations

import logging
import random
import sys
import time
from typing import Dict, Iterable, List, Mapping, Optional, TextIO

from .base import DB
from .models import ByteIterator
from ..config import BasicDbConfig

logger = logging.getLogger(__name__)


class BasicDB(DB):
    """
    Backend that prints the requested operations instead of performing them.

    Useful to validate a workload and to measure the overhead of the
    harness itself. Settings are read from the instance properties at
    ``init()``:

    - ``basicdb.verbose`` (default ``true``): print one line per call.
    - ``basicdb.simulatedelay`` (default ``0``): sleep a random
      ``[0, simulatedelay)`` milliseconds on every call.

    Never fails on its own.
    """

    def __init__(
        self,
        properties: Optional[Mapping[str, str]] = None,
        out: Optional[TextIO] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(properties)
        self.out = out
        self._rng = rng or random.Random()
        self.config = BasicDbConfig()

    def init(self) -> None:
        """
        Parse settings from the properties.

        Raises:
            ConfigurationError: If a setting does not parse
        """
        self.config = BasicDbConfig.from_properties(self.properties)
        logger.debug(
            "BasicDB initialised verbose=%s simulated_delay_ms=%d",
            self.config.verbose,
            self.config.simulated_delay_ms,
        )

        if self.config.verbose:
            self._emit("***************** properties *****************")
            for k, v in self.properties.items():
                self._emit(f'"{k}"="{v}"')
            self._emit("**********************************************")

    def new_instance(self) -> "BasicDB":
        return BasicDB(self.properties, out=self.out, rng=self._rng)

    def _emit(self, line: str) -> None:
        print(line, file=self.out or sys.stdout)

    def delay(self) -> None:
        bound = self.config.simulated_delay_ms
        if bound > 0:
            time.sleep(self._rng.randrange(bound) / 1000.0)

    def read_all(self, table: str, key: str, result: Dict[str, ByteIterator]) -> None:
        self.delay()
        if self.config.verbose:
            self._emit(f"READ {table} {key} [ <all fields> ]")

    def read_one(
        self, table: str, key: str, field: str, result: Dict[str, ByteIterator]
    ) -> None:
        self.delay()
        if self.config.verbose:
            self._emit(f"READ {table} {key} [ {field} ]")

    def scan_all(
        self,
        table: str,
        start_key: str,
        record_count: int,
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        self.delay()
        if self.config.verbose:
            self._emit(f"SCAN {table} {start_key} {record_count} [ <all fields> ]")

    def scan_one(
        self,
        table: str,
        start_key: str,
        record_count: int,
        field: str,
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        self.delay()
        if self.config.verbose:
            self._emit(f"SCAN {table} {start_key} {record_count} [ {field} ]")

    def scan(
        self,
        table: str,
        start_key: str,
        record_count: int,
        fields: Optional[Iterable[str]],
        result: List[Dict[str, ByteIterator]],
    ) -> None:
        if fields is None:
            self.scan_all(table, start_key, record_count, result)
            return
        self.delay()
        if self.config.verbose:
            listed = "".join(f"{f} " for f in fields)
            self._emit(f"SCAN {table} {start_key} {record_count} [ {listed}]")

    def update_all(self, table: str, key: str, values: Mapping[str, ByteIterator]) -> None:
        self._write("UPDATE", table, key, values)

    def update_one(self, table: str, key: str, field: str, value: ByteIterator) -> None:
        self.update_all(table, key, {field: value})

    def insert(self, table: str, key: str, values: Mapping[str, ByteIterator]) -> None:
        self._write("INSERT", table, key, values)

    def delete(self, table: str, key: str) -> None:
        self.delay()
        if self.config.verbose:
            self._emit(f"DELETE {table} {key}")

    def _write(
        self, verb: str, table: str, key: str, values: Optional[Mapping[str, ByteIterator]]
    ) -> None:
        self.delay()
        if self.config.verbose:
            # str() drains a ByteIterator, so only render when printing.
            pairs = "".join(f"{k}={v} " for k, v in (values or {}).items())
            self._emit(f"{verb} {table} {key} [ {pairs}]")
