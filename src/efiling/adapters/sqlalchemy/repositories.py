"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import and_, exists, func, or_, select

from efiling.adapters.sqlalchemy.mappings import (
    confirmation_table,
    declaration_table,
    signature_record_table,
    status_change_table,
)
from efiling.domain.model import (
    Confirmation,
    Declaration,
    DeclarationStatus,
    SignatureRecord,
    StatusChange,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemyDeclarationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Declaration) -> None:
        self.session.add(entity)

    def get(self, declaration_id: UUID) -> Declaration | None:
        return self.session.get(Declaration, declaration_id)

    def get_by_confirmation_number(self, confirmation_number: str) -> Declaration | None:
        stmt = select(Declaration).where(
            declaration_table.c.confirmation_number == confirmation_number
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_by_status(self, status: DeclarationStatus) -> list[Declaration]:
        stmt = (
            select(Declaration)
            .where(declaration_table.c.status == status)
            .order_by(declaration_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def list_awaiting_outcome(self, *, now: datetime, active_since: datetime) -> list[Declaration]:
        columns = declaration_table.c
        in_flight = and_(
            columns.status.in_((DeclarationStatus.SUBMITTED, DeclarationStatus.PROCESSING)),
            or_(columns.submitted_at.is_(None), columns.submitted_at >= active_since),
        )
        due_retry = and_(
            columns.status == DeclarationStatus.RETRY_PENDING,
            or_(columns.next_retry_at.is_(None), columns.next_retry_at <= now),
        )
        stmt = (
            select(Declaration)
            .where(or_(in_flight, due_retry))
            .order_by(columns.submitted_at, columns.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def list_stale(self, *, active_since: datetime) -> list[Declaration]:
        columns = declaration_table.c
        stmt = (
            select(Declaration)
            .where(columns.status.in_((DeclarationStatus.SUBMITTED, DeclarationStatus.PROCESSING)))
            .where(columns.submitted_at < active_since)
            .order_by(columns.submitted_at)
        )
        return list(self.session.execute(stmt).scalars())

    def list_accepted_without_receipt(self, *, limit: int) -> list[Declaration]:
        has_receipt = exists().where(
            confirmation_table.c.declaration_id == declaration_table.c.id
        )
        stmt = (
            select(Declaration)
            .where(declaration_table.c.status == DeclarationStatus.ACCEPTED)
            .where(~has_receipt)
            .order_by(
                declaration_table.c.receipt_rejected_at.asc().nulls_first(),
                declaration_table.c.updated_at,
            )
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def count_by_status(self) -> dict[DeclarationStatus, int]:
        stmt = select(declaration_table.c.status, func.count()).group_by(
            declaration_table.c.status
        )
        return {status: count for status, count in self.session.execute(stmt).tuples()}


class SqlAlchemySignatureRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SignatureRecord) -> None:
        self.session.add(entity)

    def list_for_declaration(self, declaration_id: UUID) -> list[SignatureRecord]:
        stmt = (
            select(SignatureRecord)
            .where(signature_record_table.c.declaration_id == declaration_id)
            .order_by(signature_record_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyConfirmationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Confirmation) -> None:
        self.session.add(entity)

    def get(self, confirmation_number: str) -> Confirmation | None:
        stmt = select(Confirmation).where(
            confirmation_table.c.confirmation_number == confirmation_number
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_declaration(self, declaration_id: UUID) -> list[Confirmation]:
        stmt = (
            select(Confirmation)
            .where(confirmation_table.c.declaration_id == declaration_id)
            .order_by(confirmation_table.c.received_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyStatusChangeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: StatusChange) -> None:
        self.session.add(entity)

    def list_for_declaration(self, declaration_id: UUID) -> list[StatusChange]:
        stmt = (
            select(StatusChange)
            .where(status_change_table.c.declaration_id == declaration_id)
            .order_by(status_change_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())


if TYPE_CHECKING:
    from efiling.domain.ports.persistence import (
        ConfirmationRepository,
        DeclarationRepository,
        SignatureRecordRepository,
        StatusChangeRepository,
    )

    _declarations_check: type[DeclarationRepository] = SqlAlchemyDeclarationRepository
    _signatures_check: type[SignatureRecordRepository] = SqlAlchemySignatureRecordRepository
    _confirmations_check: type[ConfirmationRepository] = SqlAlchemyConfirmationRepository
    _status_changes_check: type[StatusChangeRepository] = SqlAlchemyStatusChangeRepository
