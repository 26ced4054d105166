"""SQLAlchemy mapping metadata for the filing domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from efiling.domain.model import (
    Confirmation,
    Declaration,
    DeclarationStatus,
    DeclarationType,
    ErrorCategory,
    SignatureRecord,
    SignatureType,
    SignatureValidationStatus,
    StatusChange,
    TransitionTrigger,
    Variant,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

declaration_table = Table(
    "declaration",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("declaration_type", Enum(DeclarationType, native_enum=False), nullable=False),
    Column("period", String(7), nullable=False),
    Column("variant", Enum(Variant, native_enum=False), nullable=False),
    Column("status", Enum(DeclarationStatus, native_enum=False), nullable=False),
    Column("document", Text, nullable=True),
    Column("signature_type", Enum(SignatureType, native_enum=False), nullable=True),
    Column("signed_at", UTCDateTime(), nullable=True),
    Column("confirmation_number", String(64), nullable=True, unique=True),
    Column("confirmation_date", UTCDateTime(), nullable=True),
    Column("retry_count", Integer, nullable=False, default=0),
    Column("next_retry_at", UTCDateTime(), nullable=True),
    Column("last_error_category", Enum(ErrorCategory, native_enum=False), nullable=True),
    Column("last_error_message", Text, nullable=True),
    Column("receipt_rejected_at", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("submitted_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_declaration_status_next_retry_at", "status", "next_retry_at"),
)

signature_record_table = Table(
    "signature_record",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "declaration_id",
        UUIDColumnType,
        ForeignKey("declaration.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("signature_id", String(64), nullable=False),
    Column("signature_type", Enum(SignatureType, native_enum=False), nullable=False),
    Column("algorithm", String(64), nullable=False),
    Column("content_hash", String(64), nullable=False),
    Column("signature_value", Text, nullable=True),
    Column("signer", String, nullable=True),
    Column(
        "validation_status",
        Enum(SignatureValidationStatus, native_enum=False),
        nullable=False,
    ),
    Column("created_at", UTCDateTime(), nullable=False),
)

confirmation_table = Table(
    "confirmation",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("confirmation_number", String(64), nullable=False, unique=True),
    Column("confirmation_date", UTCDateTime(), nullable=False),
    Column("taxpayer_id", String(11), nullable=False),
    Column("tax_office_code", String(4), nullable=False),
    Column("form_code", String(16), nullable=False),
    Column("period", String(7), nullable=False),
    Column("status_code", String(8), nullable=False),
    Column("raw_document", Text, nullable=False),
    Column("has_signature", Boolean, nullable=False, default=False),
    Column(
        "declaration_id",
        UUIDColumnType,
        ForeignKey("declaration.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("received_at", UTCDateTime(), nullable=False),
)

status_change_table = Table(
    "status_change",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "declaration_id",
        UUIDColumnType,
        ForeignKey("declaration.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("old_status", Enum(DeclarationStatus, native_enum=False), nullable=True),
    Column("new_status", Enum(DeclarationStatus, native_enum=False), nullable=False),
    Column("trigger", Enum(TransitionTrigger, native_enum=False), nullable=False),
    Column("reason", Text, nullable=False),
    Column("error_category", Enum(ErrorCategory, native_enum=False), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Declaration, declaration_table)
    mapper_registry.map_imperatively(SignatureRecord, signature_record_table)
    mapper_registry.map_imperatively(Confirmation, confirmation_table)
    mapper_registry.map_imperatively(StatusChange, status_change_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create every mapped table (tests and throwaway databases only)."""

    start_mappers()
    mapper_registry.metadata.create_all(engine)
