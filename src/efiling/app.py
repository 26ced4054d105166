"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from functools import cached_property
from logging import getLogger
from typing import TYPE_CHECKING

from efiling.adapters.gateway import GatewayClient
from efiling.adapters.identity import TrustedProfileClient
from efiling.adapters.signing import (
    FragmentVerifier,
    TrustPolicy,
    build_signature_engine,
    load_credentials,
)
from efiling.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyFilingUnitOfWork,
    is_started,
    startup,
)
from efiling.config import (
    MissingConfigurationError,
    get_certificate_config,
    get_gateway_config,
    get_identity_config,
    get_tracking_config,
    get_trust_config,
    placeholder_signatures_allowed,
    validate_settings,
)
from efiling.documents import DocumentValidator, ReceiptValidator, render
from efiling.domain.clock import system_clock
from efiling.domain.confirmation import ConfirmationService
from efiling.domain.filing import FilingService
from efiling.domain.ports.unit_of_work import FilingUnitOfWork
from efiling.domain.retry import RetryPolicy, RetryScheduler
from efiling.domain.tracking import DeclarationLocks, StatusSweep, StatusTracker, SweepScheduler

if TYPE_CHECKING:
    from uuid import UUID

    from efiling.config import TrackingConfig
    from efiling.domain.clock import Clock
    from efiling.domain.model import (
        CalculationData,
        Declaration,
        DeclarationStatus,
        DeclarationType,
        EntityInfo,
        StatusChange,
        Variant,
    )
    from efiling.domain.ports.signing import DocumentSigner, IdentityProvider, SigningConfig
    from efiling.domain.ports.transport import DeclarationGateway
    from efiling.domain.tracking import SweepResult

UnitOfWorkFactory = Callable[[], FilingUnitOfWork]


log = getLogger(__name__)


class FilingApplication:
    """Wire the domain services to the configured adapters.

    Every collaborator is built on first use, so commands that never reach the
    gateway (``summary``, ``status``) do not need certificates configured.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory | None = None,
        gateway: DeclarationGateway | None = None,
        signer: DocumentSigner | None = None,
        identity_provider: IdentityProvider | None = None,
        tracking: TrackingConfig | None = None,
        trust: TrustPolicy | None = None,
        clock: Clock = system_clock,
    ) -> None:
        if unit_of_work_factory is None:
            if not is_started():
                startup()
            unit_of_work_factory = SqlAlchemyFilingUnitOfWork
        self.unit_of_work_factory = unit_of_work_factory
        self.clock = clock
        self._gateway = gateway
        self._signer = signer
        self._identity_provider = identity_provider
        self._tracking = tracking
        self._trust = trust
        self.locks = DeclarationLocks()

    @cached_property
    def tracking(self) -> TrackingConfig:
        return self._tracking or get_tracking_config()

    @cached_property
    def trust(self) -> TrustPolicy:
        if self._trust is not None:
            return self._trust
        return TrustPolicy.from_config(get_trust_config())

    @cached_property
    def gateway(self) -> DeclarationGateway:
        if self._gateway is not None:
            return self._gateway
        certificates = get_certificate_config()
        credentials = load_credentials(
            certificates.certificate_path,
            certificates.private_key_path,
            certificates.passphrase,
        )
        return GatewayClient(
            credentials=credentials, config=get_gateway_config(), clock=self.clock
        )

    @cached_property
    def identity_provider(self) -> IdentityProvider | None:
        if self._identity_provider is not None:
            return self._identity_provider
        try:
            config = get_identity_config()
        except MissingConfigurationError:
            log.info("Identity service not configured; delegated signatures are unavailable")
            return None
        return TrustedProfileClient(config=config)

    @cached_property
    def signer(self) -> DocumentSigner:
        if self._signer is not None:
            return self._signer
        return build_signature_engine(
            trust=self.trust,
            identity_provider=self.identity_provider,
            allow_placeholder=placeholder_signatures_allowed(),
            clock=self.clock,
        )

    @cached_property
    def tracker(self) -> StatusTracker:
        policy = RetryPolicy(
            base_delay=self.tracking.retry_base_delay,
            max_retries=self.tracking.max_retries,
        )
        return StatusTracker(
            unit_of_work_factory=self.unit_of_work_factory,
            locks=self.locks,
            retry_scheduler=RetryScheduler(policy),
            clock=self.clock,
            lock_timeout=self.tracking.lock_timeout_seconds,
        )

    @cached_property
    def filing(self) -> FilingService:
        return FilingService(
            unit_of_work_factory=self.unit_of_work_factory,
            renderer=render,
            validator=DocumentValidator(clock=self.clock),
            signer=self.signer,
            gateway=self.gateway,
            tracker=self.tracker,
            clock=self.clock,
            lock_timeout=self.tracking.lock_timeout_seconds,
        )

    @cached_property
    def confirmations(self) -> ConfirmationService:
        inspector = ReceiptValidator(verifier=FragmentVerifier(self.trust, clock=self.clock))
        return ConfirmationService(
            unit_of_work_factory=self.unit_of_work_factory,
            inspector=inspector,
            locks=self.locks,
            clock=self.clock,
            lock_timeout=self.tracking.lock_timeout_seconds,
        )

    @cached_property
    def sweep(self) -> StatusSweep:
        return StatusSweep(
            tracker=self.tracker,
            gateway=self.gateway,
            unit_of_work_factory=self.unit_of_work_factory,
            confirmations=self.confirmations,
            batch_size=self.tracking.batch_size,
            tracking_window=self.tracking.tracking_window,
            clock=self.clock,
        )

    def scheduler(self) -> SweepScheduler:
        return SweepScheduler(self.sweep, interval=self.tracking.status_check_interval)


def file_declaration(
    declaration_type: DeclarationType,
    period: str,
    variant: Variant,
    calculation: CalculationData,
    entity: EntityInfo,
    signing: SigningConfig,
    *,
    app: FilingApplication | None = None,
) -> Declaration:
    """Create a declaration and take it through render, validate, sign and submit."""

    application = app or FilingApplication()
    declaration = application.filing.create(declaration_type, period, variant)
    result = application.filing.file(declaration.id, calculation, entity, signing)
    log.info(f"Declaration {result.id} is {result.status}")
    return result


def run_status_sweep(*, app: FilingApplication | None = None) -> SweepResult:
    """Run one pass of the status sweep."""

    application = app or FilingApplication()
    return application.sweep.run_once()


def serve_status_sweep(*, app: FilingApplication | None = None) -> None:
    """Run the status sweep at the configured interval until interrupted."""

    application = app or FilingApplication()
    scheduler = application.scheduler()
    log.info(
        f"Serving status sweep every {application.tracking.status_check_interval} "
        f"(batch size {application.tracking.batch_size})"
    )
    scheduler.run_forever()


def declaration_status(
    declaration_id: UUID,
    *,
    app: FilingApplication | None = None,
) -> tuple[Declaration, list[StatusChange]]:
    """Return the declaration together with its audit trail."""

    application = app or FilingApplication()
    declaration = application.filing.get(declaration_id)
    return declaration, application.tracker.history(declaration_id)


def status_summary(*, app: FilingApplication | None = None) -> dict[DeclarationStatus, int]:
    application = app or FilingApplication()
    return application.tracker.status_summary()


def reset_failed_declaration(
    declaration_id: UUID,
    *,
    operator: str | None = None,
    app: FilingApplication | None = None,
) -> Declaration:
    """Move a failed declaration back to ``ready`` for another attempt."""

    application = app or FilingApplication()
    declaration = application.tracker.reset_failed(declaration_id, operator=operator)
    log.info(f"Declaration {declaration_id} reset to {declaration.status}")
    return declaration


def probe_gateway(*, app: FilingApplication | None = None) -> bool:
    application = app or FilingApplication()
    return application.gateway.probe_connectivity()


def check_configuration() -> list[str]:
    problems = validate_settings()
    for problem in problems:
        log.warning(f"Configuration problem: {problem}")
    return problems
