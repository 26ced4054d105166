"""SQLAlchemy adapter package for efiling."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyConfirmationRepository,
    SqlAlchemyDeclarationRepository,
    SqlAlchemySignatureRecordRepository,
    SqlAlchemyStatusChangeRepository,
)
from .unit_of_work import SqlAlchemyFilingUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyConfirmationRepository",
    "SqlAlchemyDeclarationRepository",
    "SqlAlchemyFilingUnitOfWork",
    "SqlAlchemySignatureRecordRepository",
    "SqlAlchemyStatusChangeRepository",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
