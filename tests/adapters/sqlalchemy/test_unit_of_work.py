from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from efiling.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyFilingUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from efiling.domain.model import Declaration, DeclarationType, Variant

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def _declaration() -> Declaration:
    return Declaration(
        declaration_type=DeclarationType.VAT_7, period="2025-02", variant=Variant.MONTHLY
    )


def test_sqlalchemy_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyFilingUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_unit_of_work_persists_declarations(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    declaration = _declaration()

    with SqlAlchemyFilingUnitOfWork() as uow:
        uow.repositories.declarations.add(declaration)
        uow.commit()

    with SqlAlchemyFilingUnitOfWork() as uow:
        loaded = uow.repositories.declarations.get(declaration.id)
        assert loaded is not None
        assert loaded.period == "2025-02"


def test_unit_of_work_rolls_back_on_error(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    declaration = _declaration()

    with pytest.raises(RuntimeError, match="boom"), SqlAlchemyFilingUnitOfWork() as uow:
        uow.repositories.declarations.add(declaration)
        uow.session.flush()
        raise RuntimeError("boom")

    with SqlAlchemyFilingUnitOfWork() as uow:
        assert uow.repositories.declarations.get(declaration.id) is None


def test_repositories_need_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyFilingUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories

    with uow:
        assert uow.repositories.status_changes is not None

    with pytest.raises(StartupError):
        _ = uow.session
