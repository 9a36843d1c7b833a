# src/tracecheck/core/checkpoint/schema.py
"""SQLAlchemy table definitions for the checkpoint database.

Uses SQLAlchemy Core (not ORM). A single key-value table is partitioned
by bucket; keys are stored as bytes so ordering is byte order.
"""

from sqlalchemy import Column, LargeBinary, MetaData, PrimaryKeyConstraint, String, Table, Text

metadata = MetaData()

kv_table = Table(
    "kv",
    metadata,
    Column("bucket", String(128), nullable=False),
    Column("key", LargeBinary, nullable=False),
    Column("value", Text, nullable=False),
    PrimaryKeyConstraint("bucket", "key"),
)
