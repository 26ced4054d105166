from __future__ import annotations

import os
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from efiling.adapters.signing import TrustPolicy
from efiling.adapters.sqlalchemy import start_mappers
from efiling.adapters.sqlalchemy.migrations import upgrade_head
from efiling.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyFilingUnitOfWork,
    shutdown,
    startup,
)
from efiling.domain.model import CalculationData, DeclarationType, EntityInfo
from tests.helpers.certificates import (
    TEST_ISSUER,
    CertificateAuthority,
    CertificateFiles,
    make_authority,
    write_certificate,
)

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    def fixed() -> datetime:
        return NOW

    return fixed


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyFilingUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyFilingUnitOfWork:
        return SqlAlchemyFilingUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture(scope="session")
def certificate_dir(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("certificates")


@pytest.fixture(scope="session")
def authority() -> CertificateAuthority:
    return make_authority()


@pytest.fixture(scope="session")
def certificate_files(certificate_dir: Path, authority: CertificateAuthority) -> CertificateFiles:
    return write_certificate(certificate_dir, name="signer", authority=authority)


@pytest.fixture(scope="session")
def untrusted_certificate_files(certificate_dir: Path) -> CertificateFiles:
    return write_certificate(certificate_dir, name="untrusted", organization="Acme Self Signed")


@pytest.fixture
def trust(authority: CertificateAuthority) -> TrustPolicy:
    return TrustPolicy((TEST_ISSUER,), anchors=(authority.certificate,))


@pytest.fixture
def entity() -> EntityInfo:
    return EntityInfo(
        taxpayer_id="1234563218",
        name="Przykładowa Spółka z o.o.",
        tax_office_code="1471",
        email="biuro@example.pl",
    )


@pytest.fixture
def vat_calculation() -> CalculationData:
    return CalculationData(
        declaration_type=DeclarationType.VAT_7,
        period="2025-02",
        prepared_on=date(2025, 3, 10),
        output_tax=276,
        input_tax=115,
    )
