# src/tracecheck/core/checkpoint/store.py
"""Bucketed key-value checkpoint store.

Each check owns two buckets: its progress bucket (named after the check)
holding one ProgressRecord per unit, and its state bucket holding one
ledger snapshot per address.
"""

import json
import re
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from tracecheck.contracts.enums import CheckName
from tracecheck.contracts.errors import InvalidKeyError
from tracecheck.contracts.ledger import LedgerState
from tracecheck.contracts.progress import (
    ADDRESS_HEIGHT_SEPARATOR,
    AddressHeightUnit,
    HeightUnit,
    ProgressRecord,
    Unit,
)
from tracecheck.core.checkpoint.database import CheckpointDB
from tracecheck.core.checkpoint.schema import kv_table

# Signed decimal, as accepted for height keys.
_HEIGHT_KEY = re.compile(r"[+-]?[0-9]+")

StateT = TypeVar("StateT", bound=LedgerState)


class CheckpointStore:
    """JSON values under string keys in one bucket."""

    def __init__(self, db: CheckpointDB, bucket: str) -> None:
        self._db = db
        self.bucket = bucket

    def insert(self, key: str, value: Any) -> None:
        """Store value under key, overwriting any previous value.

        Raises:
            InvalidKeyError: If key is empty
        """
        if not key:
            raise InvalidKeyError(f"empty key in bucket {self.bucket!r}")
        encoded = json.dumps(value, separators=(",", ":"))
        stmt = sqlite_insert(kv_table).values(bucket=self.bucket, key=key.encode("utf-8"), value=encoded)
        stmt = stmt.on_conflict_do_update(index_elements=["bucket", "key"], set_={"value": encoded})
        with self._db.connection() as conn:
            conn.execute(stmt)

    def get(self, key: str) -> Any | None:
        """Decoded value under key, or None when absent."""
        query = select(kv_table.c.value).where(
            kv_table.c.bucket == self.bucket,
            kv_table.c.key == key.encode("utf-8"),
        )
        with self._db.connection() as conn:
            row = conn.execute(query).first()
        if row is None:
            return None
        return json.loads(row.value)

    def dump_all(self) -> dict[str, Any]:
        """Every key and decoded value, in key byte order."""
        query = select(kv_table.c.key, kv_table.c.value).where(kv_table.c.bucket == self.bucket).order_by(kv_table.c.key)
        with self._db.connection() as conn:
            rows = conn.execute(query).all()
        return {bytes(row.key).decode("utf-8"): json.loads(row.value) for row in rows}

    def get_latest_height(self) -> int:
        """Height of the byte-wise last plain height key, 0 if there is none.

        Scans backward from the last key, skipping address-scoped keys and
        keys that are not decimal integers. This is byte order, not a
        numeric maximum: with keys "100", "200" and "50" the result is 50.
        """
        query = select(kv_table.c.key).where(kv_table.c.bucket == self.bucket).order_by(kv_table.c.key.desc())
        with self._db.connection() as conn:
            for row in conn.execute(query):
                key = bytes(row.key).decode("utf-8")
                if ADDRESS_HEIGHT_SEPARATOR in key:
                    continue
                if _HEIGHT_KEY.fullmatch(key):
                    return int(key)
        return 0


class ProgressStore:
    """Progress records of one check."""

    def __init__(self, db: CheckpointDB, check: CheckName) -> None:
        self._store = CheckpointStore(db, check.value)

    def record(self, unit: Unit, success: bool, message: str) -> ProgressRecord:
        record = ProgressRecord(key=unit.key, success=success, message=message)
        self._store.insert(record.key, record.to_value())
        return record

    def record_height(self, height: int, success: bool, message: str) -> ProgressRecord:
        return self.record(HeightUnit(height), success, message)

    def record_address(self, address: str, height: int, success: bool, message: str) -> ProgressRecord:
        return self.record(AddressHeightUnit(address, height), success, message)

    def get(self, unit: Unit) -> ProgressRecord | None:
        value = self._store.get(unit.key)
        if value is None:
            return None
        return ProgressRecord.from_value(unit.key, value)

    def latest_height(self) -> int:
        return self._store.get_latest_height()

    def dump_all(self) -> dict[str, Any]:
        return self._store.dump_all()


class StateStore:
    """Ledger snapshots of one check, keyed by address."""

    def __init__(self, db: CheckpointDB, check: CheckName) -> None:
        self._store = CheckpointStore(db, check.state_bucket)

    def load(self, address: str, state_cls: type[StateT]) -> StateT | None:
        snapshot = self._store.get(address)
        if snapshot is None:
            return None
        return state_cls.from_snapshot(snapshot)

    def save(self, address: str, state: LedgerState) -> None:
        self._store.insert(address, state.to_snapshot())
