"""Periodic sweep over declarations awaiting an outcome from the authority."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from efiling.domain.clock import system_clock
from efiling.domain.errors import FilingError, TransitionInProgressError
from efiling.domain.model import DeclarationStatus, TransitionTrigger

from .tracker import PendingTransition

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence
    from datetime import datetime
    from uuid import UUID

    from efiling.domain.clock import Clock
    from efiling.domain.confirmation import ConfirmationService
    from efiling.domain.ports.transport import DeclarationGateway
    from efiling.domain.ports.unit_of_work import FilingUnitOfWork

    from .tracker import StatusTracker

log = getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_TRACKING_WINDOW = timedelta(days=30)


@dataclass(slots=True, frozen=True)
class _Candidate:
    id: UUID
    status: DeclarationStatus
    confirmation_number: str | None
    document: str | None


@dataclass(slots=True)
class SweepResult:
    examined: int = 0
    polled: int = 0
    resubmitted: int = 0
    skipped: int = 0
    failures: int = 0
    receipts: int = 0
    rejected_receipts: int = 0
    stale: int = 0
    transitions: list[tuple[UUID, DeclarationStatus]] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return len(self.transitions)


def _batched(items: Sequence[_Candidate], size: int) -> Iterator[Sequence[_Candidate]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class StatusSweep:
    """One pass over every declaration awaiting an outcome.

    Candidates are handled in bounded batches. For each one the sweep takes the
    declaration lock without waiting (a busy declaration is skipped until the next
    pass), talks to the gateway and queues the resulting transitions; the queue is
    drained once per batch. Accepted declarations without a stored receipt get
    their receipt fetched afterwards.
    """

    def __init__(
        self,
        *,
        tracker: StatusTracker,
        gateway: DeclarationGateway,
        unit_of_work_factory: Callable[[], FilingUnitOfWork],
        confirmations: ConfirmationService | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        tracking_window: timedelta = DEFAULT_TRACKING_WINDOW,
        clock: Clock = system_clock,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._tracker = tracker
        self._gateway = gateway
        self._unit_of_work_factory = unit_of_work_factory
        self._confirmations = confirmations
        self._batch_size = batch_size
        self._tracking_window = tracking_window
        self._clock = clock

    def run_once(self) -> SweepResult:
        now = self._clock()
        candidates, stale = self._load_candidates(now)
        result = SweepResult(examined=len(candidates), stale=len(stale))
        if stale:
            log.warning(
                f"{len(stale)} declaration(s) outside the tracking window need manual review: "
                + ", ".join(str(item) for item in stale)
            )
        log.info(f"Status sweep started: {len(candidates)} declaration(s) awaiting outcome")

        for batch in _batched(candidates, self._batch_size):
            for candidate in batch:
                try:
                    with self._tracker.locks.hold(candidate.id, timeout=0):
                        self._process(candidate, result)
                except TransitionInProgressError:
                    result.skipped += 1
            for declaration in self._tracker.drain():
                result.transitions.append((declaration.id, declaration.status))

        if self._confirmations is not None:
            self._collect_receipts(result)

        log.info(
            f"Status sweep finished: examined={result.examined}, polled={result.polled}, "
            f"resubmitted={result.resubmitted}, skipped={result.skipped}, "
            f"failures={result.failures}, transitions={result.applied}, "
            f"receipts={result.receipts}, rejected_receipts={result.rejected_receipts}, "
            f"stale={result.stale}"
        )
        return result

    def _load_candidates(self, now: datetime) -> tuple[list[_Candidate], list[UUID]]:
        active_since = now - self._tracking_window
        with self._unit_of_work_factory() as uow:
            repository = uow.repositories.declarations
            declarations = repository.list_awaiting_outcome(now=now, active_since=active_since)
            stale = [item.id for item in repository.list_stale(active_since=active_since)]
            candidates = [
                _Candidate(
                    id=declaration.id,
                    status=declaration.status,
                    confirmation_number=declaration.confirmation_number,
                    document=declaration.document,
                )
                for declaration in declarations
            ]
            return candidates, stale

    def _process(self, candidate: _Candidate, result: SweepResult) -> None:
        retrying = candidate.status is DeclarationStatus.RETRY_PENDING
        if retrying and not candidate.confirmation_number:
            self._resubmit(candidate, result)
            return
        if not candidate.confirmation_number:
            log.warning(f"Declaration {candidate.id} is {candidate.status} without a number")
            result.skipped += 1
            return
        self._poll(candidate, candidate.confirmation_number, result)

    def _resubmit(self, candidate: _Candidate, result: SweepResult) -> None:
        if candidate.document is None:
            log.error(f"Declaration {candidate.id} is due for retry but has no document")
            result.skipped += 1
            return
        result.resubmitted += 1
        try:
            receipt = self._gateway.submit(candidate.document)
        except FilingError as exc:
            result.failures += 1
            self._tracker.enqueue(
                self._tracker.failure_transition(
                    candidate.id,
                    exc,
                    trigger=TransitionTrigger.SWEEP,
                    reason="resubmission failed",
                    expected_status=candidate.status,
                )
            )
            return
        self._tracker.enqueue(
            self._tracker.submitted_transition(
                candidate.id,
                receipt,
                trigger=TransitionTrigger.SWEEP,
                expected_status=DeclarationStatus.RETRY_PENDING,
            )
        )
        follow_up = self._tracker.receipt_follow_up(
            candidate.id, receipt, trigger=TransitionTrigger.SWEEP
        )
        if follow_up is not None:
            self._tracker.enqueue(follow_up)

    def _poll(self, candidate: _Candidate, number: str, result: SweepResult) -> None:
        result.polled += 1
        try:
            report = self._gateway.check_status(number)
        except FilingError as exc:
            result.failures += 1
            self._tracker.enqueue(
                self._tracker.failure_transition(
                    candidate.id,
                    exc,
                    trigger=TransitionTrigger.SWEEP,
                    reason="status check failed",
                    expected_status=candidate.status,
                )
            )
            return

        expected = candidate.status
        if candidate.status is DeclarationStatus.RETRY_PENDING:
            self._tracker.enqueue(
                PendingTransition(
                    declaration_id=candidate.id,
                    trigger=TransitionTrigger.SWEEP,
                    target=DeclarationStatus.SUBMITTED,
                    reason="status check recovered",
                    expected_status=DeclarationStatus.RETRY_PENDING,
                )
            )
            expected = DeclarationStatus.SUBMITTED
        self._tracker.enqueue(
            self._tracker.report_transition(
                candidate.id,
                report,
                trigger=TransitionTrigger.SWEEP,
                expected_status=expected,
            )
        )

    def _collect_receipts(self, result: SweepResult) -> None:
        confirmations = self._confirmations
        if confirmations is None:
            return
        with self._unit_of_work_factory() as uow:
            accepted = [
                (declaration.id, declaration.confirmation_number)
                for declaration in uow.repositories.declarations.list_accepted_without_receipt(
                    limit=self._batch_size
                )
            ]

        rejected: list[UUID] = []
        for declaration_id, number in accepted:
            if not number:
                continue
            try:
                with self._tracker.locks.hold(declaration_id, timeout=0):
                    receipt_xml = self._gateway.fetch_receipt(number)
                    outcome = confirmations.process(declaration_id, receipt_xml)
            except TransitionInProgressError:
                result.skipped += 1
                continue
            except FilingError as exc:
                log.warning(f"Could not collect receipt {number} for {declaration_id}: {exc}")
                result.failures += 1
                continue
            if outcome.stored:
                result.receipts += 1
            elif not outcome.report.is_valid:
                rejected.append(declaration_id)

        result.rejected_receipts = len(rejected)
        if rejected:
            log.warning(
                f"{len(rejected)} receipt(s) failed validation and need manual review: "
                + ", ".join(str(item) for item in rejected)
            )
