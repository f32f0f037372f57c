import logging
from decimal import Decimal

from sqlalchemy import (
    Table,
    MetaData,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Index,
    Uuid,
)
from sqlalchemy.types import TypeDecorator

logger = logging.getLogger(__name__)


class ExactDecimal(TypeDecorator):
    """
    Decimal stored as its canonical string.

    Result values and reference ranges must reload digit for digit, whatever
    their scale or magnitude, because the derived result status depends on
    them. A scaled NUMERIC column would round them.
    """
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


# The Sample aggregate is an immutable value, so it is not mapped
# imperatively; the repository translates rows to aggregates explicitly.
metadata = MetaData()

samples = Table(
    "samples",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("code", String(32), nullable=False, unique=True),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("analysis_type", String(32), nullable=False),
    Column("status", String(32), nullable=False),
    Column("result_status", String(32), nullable=False),
    Column("result_id", Uuid, nullable=True),
    Column("result_type", String(32), nullable=True),
    Column("result_numeric", ExactDecimal, nullable=True),
    Column("result_unit", String(20), nullable=True),
    Column("result_ref_min", ExactDecimal, nullable=True),
    Column("result_ref_max", ExactDecimal, nullable=True),
    Column("result_notes", Text, nullable=True),
    Column("result_completed_at", DateTime(timezone=True), nullable=True),
    Column("validated_by_id", Uuid, nullable=True),
    Column("validation_notes", Text, nullable=True),
    Column("rejection_reason", Text, nullable=True),
    Column("received_at", DateTime(timezone=True), nullable=False),
    Column("validated_at", DateTime(timezone=True), nullable=True),
    Column("notified_at", DateTime(timezone=True), nullable=True),
    Column("version_number", Integer, nullable=False, server_default="0"),
)

Index("ix_samples_status", samples.c.status)


def create_tables(engine):
    logger.info("Creating lab results tables")
    metadata.create_all(engine)
