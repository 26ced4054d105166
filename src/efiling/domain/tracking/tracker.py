"""Status tracker: applies declaration status transitions with an audit trail."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from efiling.domain.clock import system_clock
from efiling.domain.errors import (
    ConfirmationConflictError,
    DeclarationNotFoundError,
    FilingError,
    InvalidTransitionError,
    TemporaryFailureError,
    TransitionInProgressError,
)
from efiling.domain.failures import classify
from efiling.domain.model import (
    AuthorityStatus,
    DeclarationStatus,
    StatusChange,
    TransitionTrigger,
)
from efiling.domain.ports.transport import StatusReport
from efiling.domain.retry import RetryScheduler

from .locks import DeclarationLocks
from .state_machine import ensure_allowed

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from efiling.domain.clock import Clock
    from efiling.domain.failures import ClassifiedFailure
    from efiling.domain.model import Declaration
    from efiling.domain.ports.transport import SubmissionReceipt
    from efiling.domain.ports.unit_of_work import FilingUnitOfWork

log = getLogger(__name__)

_REPORTED_TARGETS: dict[AuthorityStatus, DeclarationStatus] = {
    AuthorityStatus.SUBMITTED: DeclarationStatus.SUBMITTED,
    AuthorityStatus.PROCESSING: DeclarationStatus.PROCESSING,
    AuthorityStatus.ACCEPTED: DeclarationStatus.ACCEPTED,
    AuthorityStatus.REJECTED: DeclarationStatus.REJECTED,
}


@dataclass(slots=True, frozen=True)
class PendingTransition:
    """A requested status change.

    Either ``target`` or ``failure`` is set. For failures the target is decided
    when the transition is applied, from the retry count stored at that moment.
    ``expected_status`` makes the transition stale (and skipped) when the
    declaration moved on in the meantime.
    """

    declaration_id: UUID
    trigger: TransitionTrigger
    reason: str
    target: DeclarationStatus | None = None
    failure: ClassifiedFailure | None = None
    expected_status: DeclarationStatus | None = None
    confirmation_number: str | None = None
    confirmation_date: datetime | None = None

    def __post_init__(self) -> None:
        if (self.target is None) == (self.failure is None):
            raise ValueError("A pending transition needs exactly one of target or failure")


class StatusTracker:
    """Drive declarations through their lifecycle.

    Every transition runs under the declaration lock inside its own unit of work
    and is persisted together with a ``StatusChange`` audit entry.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], FilingUnitOfWork],
        locks: DeclarationLocks | None = None,
        retry_scheduler: RetryScheduler | None = None,
        clock: Clock = system_clock,
        lock_timeout: float = 30.0,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self.locks = locks or DeclarationLocks()
        self.retry_scheduler = retry_scheduler or RetryScheduler()
        self._clock = clock
        self._lock_timeout = lock_timeout
        self._queue: deque[PendingTransition] = deque()
        self._queue_guard = threading.Lock()

    # ------------------------------------------------------------------ core

    def transition(self, pending: PendingTransition, *, wait: bool = True) -> Declaration | None:
        """Apply one transition now; returns ``None`` when it turned out stale."""

        timeout = self._lock_timeout if wait else 0
        with self.locks.hold(pending.declaration_id, timeout=timeout):
            return self._apply(pending)

    def enqueue(self, pending: PendingTransition) -> None:
        with self._queue_guard:
            self._queue.append(pending)

    def pending_count(self) -> int:
        with self._queue_guard:
            return len(self._queue)

    def drain(self) -> list[Declaration]:
        """Apply queued transitions in order.

        Transitions whose declaration is locked beyond the timeout go back on the
        queue for the next drain; transitions rejected by the state machine are
        dropped with a warning.
        """

        with self._queue_guard:
            batch = list(self._queue)
            self._queue.clear()

        applied: list[Declaration] = []
        deferred: list[PendingTransition] = []
        for pending in batch:
            try:
                declaration = self.transition(pending)
            except TransitionInProgressError:
                deferred.append(pending)
                continue
            except InvalidTransitionError as exc:
                log.warning(f"Dropping queued transition for {pending.declaration_id}: {exc}")
                continue
            if declaration is not None:
                applied.append(declaration)

        if deferred:
            with self._queue_guard:
                self._queue.extendleft(reversed(deferred))
        return applied

    def _apply(self, pending: PendingTransition) -> Declaration | None:
        with self._unit_of_work_factory() as uow:
            declarations = uow.repositories.declarations
            declaration = declarations.get(pending.declaration_id)
            if declaration is None:
                raise DeclarationNotFoundError(pending.declaration_id)

            if (
                pending.expected_status is not None
                and declaration.status is not pending.expected_status
            ):
                log.info(
                    f"Skipping stale transition for {declaration.id}: expected "
                    f"{pending.expected_status}, found {declaration.status}"
                )
                return None

            now = self._clock()
            old_status = declaration.status
            reason = pending.reason
            error_category = None

            if pending.failure is not None:
                failure = pending.failure
                decision = self.retry_scheduler.decide(
                    failure, retry_count=declaration.retry_count, now=now
                )
                target = (
                    DeclarationStatus.RETRY_PENDING if decision.retry else DeclarationStatus.FAILED
                )
                ensure_allowed(old_status, target, pending.trigger)
                declaration.retry_count = decision.retry_count
                declaration.next_retry_at = decision.next_retry_at
                declaration.record_error(failure.category, failure.describe())
                error_category = failure.category
                reason = f"{pending.reason}: {failure.describe()} ({decision.reason})"
            else:
                target = pending.target
                if target is None:
                    raise InvalidTransitionError("Pending transition has no target status")
                if target is old_status:
                    return declaration
                ensure_allowed(old_status, target, pending.trigger)
                self._update_fields(declaration, pending, target, now=now)
                if pending.confirmation_number is not None:
                    self._assign_confirmation(uow, declaration, pending)

            declaration.status = target
            declaration.updated_at = now
            uow.repositories.status_changes.add(
                StatusChange(
                    declaration_id=declaration.id,
                    old_status=old_status,
                    new_status=target,
                    trigger=pending.trigger,
                    reason=reason,
                    error_category=error_category,
                    created_at=now,
                )
            )
            uow.commit()

        level_warning = target in {DeclarationStatus.FAILED, DeclarationStatus.RETRY_PENDING}
        message = f"Declaration {declaration.id}: {old_status} -> {target} ({reason})"
        if level_warning:
            log.warning(message)
        else:
            log.info(message)
        return declaration

    @staticmethod
    def _update_fields(
        declaration: Declaration,
        pending: PendingTransition,
        target: DeclarationStatus,
        *,
        now: datetime,
    ) -> None:
        old_status = declaration.status
        if target is DeclarationStatus.SUBMITTED:
            # a successful call ends the run of consecutive failures
            if old_status is DeclarationStatus.RETRY_PENDING:
                declaration.clear_retry_state()
            else:
                declaration.next_retry_at = None
            if old_status is DeclarationStatus.READY or declaration.submitted_at is None:
                declaration.submitted_at = now
        elif target in {DeclarationStatus.ACCEPTED, DeclarationStatus.REJECTED}:
            declaration.next_retry_at = None
        elif target is DeclarationStatus.DRAFT:
            declaration.discard_signature()
        elif target is DeclarationStatus.READY and old_status is DeclarationStatus.FAILED:
            declaration.clear_retry_state()
        elif target is DeclarationStatus.FAILED:
            declaration.next_retry_at = None
            declaration.record_error(declaration.last_error_category, pending.reason)

    @staticmethod
    def _assign_confirmation(
        uow: FilingUnitOfWork,
        declaration: Declaration,
        pending: PendingTransition,
    ) -> None:
        number = pending.confirmation_number
        if number is None:
            return
        owner = uow.repositories.declarations.get_by_confirmation_number(number)
        if owner is not None and owner.id != declaration.id:
            raise ConfirmationConflictError(
                f"Confirmation number {number} already belongs to declaration {owner.id}"
            )
        declaration.confirmation_number = number
        if pending.confirmation_date is not None:
            declaration.confirmation_date = pending.confirmation_date

    # --------------------------------------------------------------- helpers

    def mark_ready(self, declaration_id: UUID, *, reason: str = "validation passed") -> Declaration:
        return self._require(
            self.transition(
                PendingTransition(
                    declaration_id=declaration_id,
                    trigger=TransitionTrigger.CALLER,
                    target=DeclarationStatus.READY,
                    reason=reason,
                )
            )
        )

    def reset_to_draft(self, declaration_id: UUID, *, reason: str) -> Declaration:
        return self._require(
            self.transition(
                PendingTransition(
                    declaration_id=declaration_id,
                    trigger=TransitionTrigger.CALLER,
                    target=DeclarationStatus.DRAFT,
                    reason=reason,
                )
            )
        )

    def mark_submitted(
        self,
        declaration_id: UUID,
        receipt: SubmissionReceipt,
        *,
        trigger: TransitionTrigger = TransitionTrigger.TRANSPORT,
    ) -> Declaration:
        return self._require(
            self.transition(self.submitted_transition(declaration_id, receipt, trigger=trigger))
        )

    def apply_status(
        self,
        declaration_id: UUID,
        report: StatusReport,
        *,
        trigger: TransitionTrigger = TransitionTrigger.TRANSPORT,
    ) -> Declaration | None:
        return self.transition(self.report_transition(declaration_id, report, trigger=trigger))

    def record_failure(
        self,
        declaration_id: UUID,
        error: BaseException,
        *,
        trigger: TransitionTrigger = TransitionTrigger.TRANSPORT,
        reason: str = "submission failed",
    ) -> Declaration:
        return self._require(
            self.transition(
                self.failure_transition(declaration_id, error, trigger=trigger, reason=reason)
            )
        )

    def reset_failed(self, declaration_id: UUID, *, operator: str | None = None) -> Declaration:
        actor = operator or "operator"
        return self._require(
            self.transition(
                PendingTransition(
                    declaration_id=declaration_id,
                    trigger=TransitionTrigger.OPERATOR,
                    target=DeclarationStatus.READY,
                    reason=f"manual reset by {actor}",
                )
            )
        )

    @staticmethod
    def submitted_transition(
        declaration_id: UUID,
        receipt: SubmissionReceipt,
        *,
        trigger: TransitionTrigger,
        expected_status: DeclarationStatus | None = None,
    ) -> PendingTransition:
        return PendingTransition(
            declaration_id=declaration_id,
            trigger=trigger,
            target=DeclarationStatus.SUBMITTED,
            reason=receipt.message or "accepted for processing by the gateway",
            expected_status=expected_status,
            confirmation_number=receipt.confirmation_number,
            confirmation_date=receipt.confirmation_date,
        )

    @staticmethod
    def report_transition(
        declaration_id: UUID,
        report: StatusReport,
        *,
        trigger: TransitionTrigger,
        expected_status: DeclarationStatus | None = None,
    ) -> PendingTransition:
        description = report.status_description or report.status
        reason = f"authority status {report.status_code}: {description}"
        target = _REPORTED_TARGETS.get(report.status)
        if target is None:
            error = TemporaryFailureError(f"authority reported error {report.status_code}")
            return PendingTransition(
                declaration_id=declaration_id,
                trigger=trigger,
                failure=classify(error),
                reason=reason,
                expected_status=expected_status,
            )
        return PendingTransition(
            declaration_id=declaration_id,
            trigger=trigger,
            target=target,
            reason=reason,
            expected_status=expected_status,
        )

    @staticmethod
    def receipt_follow_up(
        declaration_id: UUID,
        receipt: SubmissionReceipt,
        *,
        trigger: TransitionTrigger,
    ) -> PendingTransition | None:
        """Transition for a submission the gateway already reports beyond ``submitted``."""

        if receipt.status is AuthorityStatus.SUBMITTED:
            return None
        report = StatusReport(
            confirmation_number=receipt.confirmation_number,
            status_code=receipt.status_code,
            status=receipt.status,
            status_description=receipt.message,
            processing_date=receipt.confirmation_date,
        )
        return StatusTracker.report_transition(
            declaration_id,
            report,
            trigger=trigger,
            expected_status=DeclarationStatus.SUBMITTED,
        )

    @staticmethod
    def failure_transition(
        declaration_id: UUID,
        error: BaseException,
        *,
        trigger: TransitionTrigger,
        reason: str,
        expected_status: DeclarationStatus | None = None,
    ) -> PendingTransition:
        return PendingTransition(
            declaration_id=declaration_id,
            trigger=trigger,
            failure=classify(error),
            reason=reason,
            expected_status=expected_status,
        )

    @staticmethod
    def _require(declaration: Declaration | None) -> Declaration:
        if declaration is None:
            raise FilingError("Transition was skipped because the declaration moved on")
        return declaration

    # ----------------------------------------------------------------- reads

    def history(self, declaration_id: UUID) -> list[StatusChange]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.status_changes.list_for_declaration(declaration_id)

    def status_summary(self) -> dict[DeclarationStatus, int]:
        with self._unit_of_work_factory() as uow:
            counts = uow.repositories.declarations.count_by_status()
        return {status: counts.get(status, 0) for status in DeclarationStatus}
