from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy import inspect, select

from efiling.adapters.sqlalchemy import create_all_tables, start_mappers
from efiling.adapters.sqlalchemy.mappings import declaration_table
from efiling.domain.model import (
    Declaration,
    DeclarationStatus,
    DeclarationType,
    ErrorCategory,
    StatusChange,
    TransitionTrigger,
    Variant,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session


def test_start_mappers_is_idempotent() -> None:
    # First invocation happens in the sqlite_engine fixture; calling again should be harmless.
    start_mappers()
    start_mappers()


def test_migrations_create_every_table(sqlite_engine: Engine) -> None:
    table_names = set(inspect(sqlite_engine).get_table_names())

    assert {"declaration", "signature_record", "confirmation", "status_change"} <= table_names
    assert "alembic_version" in table_names


def test_create_all_tables_is_harmless_after_migrations(sqlite_engine: Engine) -> None:
    create_all_tables(sqlite_engine)

    columns = {column["name"] for column in inspect(sqlite_engine).get_columns("declaration")}
    assert {"status", "retry_count", "next_retry_at", "receipt_rejected_at"} <= columns


def test_declaration_round_trip_keeps_enums_and_utc(sqlite_session: Session) -> None:
    warsaw = timezone(timedelta(hours=1))
    declaration = Declaration(
        declaration_type=DeclarationType.CIT_8,
        period="2024",
        variant=Variant.ANNUAL,
        status=DeclarationStatus.RETRY_PENDING,
        retry_count=2,
        next_retry_at=datetime(2025, 3, 10, 10, 0, tzinfo=warsaw),
        last_error_category=ErrorCategory.SERVICE_UNAVAILABLE,
        last_error_message="HTTP 503",
    )
    sqlite_session.add(declaration)
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded = sqlite_session.get(Declaration, declaration.id)

    assert loaded is not None
    assert loaded.declaration_type is DeclarationType.CIT_8
    assert loaded.status is DeclarationStatus.RETRY_PENDING
    assert loaded.last_error_category is ErrorCategory.SERVICE_UNAVAILABLE
    assert loaded.next_retry_at == datetime(2025, 3, 10, 9, 0, tzinfo=UTC)
    assert loaded.next_retry_at is not None
    assert loaded.next_retry_at.tzinfo is not None
    assert loaded.form_code == "CIT-8"

    stored_period = sqlite_session.execute(select(declaration_table.c.period)).scalar_one()
    assert stored_period == "2024"


def test_status_change_allows_missing_previous_status(sqlite_session: Session) -> None:
    declaration = Declaration(
        declaration_type=DeclarationType.VAT_7, period="2025-02", variant=Variant.MONTHLY
    )
    change = StatusChange(
        declaration_id=declaration.id,
        old_status=None,
        new_status=DeclarationStatus.DRAFT,
        trigger=TransitionTrigger.CALLER,
        reason="created",
    )
    sqlite_session.add_all([declaration, change])
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded = sqlite_session.get(StatusChange, change.id)

    assert loaded is not None
    assert loaded.old_status is None
    assert loaded.trigger is TransitionTrigger.CALLER
