"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

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


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class DeclarationRepository(Repository[Declaration], Protocol):
    """Persistence contract for declarations."""

    def get(self, declaration_id: UUID) -> Declaration | None: ...

    def get_by_confirmation_number(self, confirmation_number: str) -> Declaration | None: ...

    def list_by_status(self, status: DeclarationStatus) -> list[Declaration]: ...

    def list_awaiting_outcome(self, *, now: datetime, active_since: datetime) -> list[Declaration]:
        """Declarations the sweep should look at: submitted, processing, or due for retry."""
        ...

    def list_stale(self, *, active_since: datetime) -> list[Declaration]:
        """Submitted or processing declarations last submitted before ``active_since``."""
        ...

    def list_accepted_without_receipt(self, *, limit: int) -> list[Declaration]:
        """Accepted declarations lacking a stored receipt, never-rejected ones first."""
        ...

    def count_by_status(self) -> dict[DeclarationStatus, int]: ...


@runtime_checkable
class SignatureRecordRepository(Repository[SignatureRecord], Protocol):
    """Append-only store of signature records."""

    def list_for_declaration(self, declaration_id: UUID) -> list[SignatureRecord]: ...


@runtime_checkable
class ConfirmationRepository(Repository[Confirmation], Protocol):
    """Append-only store of validated receipts."""

    def get(self, confirmation_number: str) -> Confirmation | None: ...

    def list_for_declaration(self, declaration_id: UUID) -> list[Confirmation]: ...


@runtime_checkable
class StatusChangeRepository(Repository[StatusChange], Protocol):
    """Append-only audit trail of status transitions."""

    def list_for_declaration(self, declaration_id: UUID) -> list[StatusChange]: ...
