"""Allowed declaration status transitions."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from efiling.domain.errors import InvalidTransitionError
from efiling.domain.model.enums import DeclarationStatus, TransitionTrigger

if TYPE_CHECKING:
    from collections.abc import Mapping

_DRAFT = DeclarationStatus.DRAFT
_READY = DeclarationStatus.READY
_SUBMITTED = DeclarationStatus.SUBMITTED
_PROCESSING = DeclarationStatus.PROCESSING
_RETRY = DeclarationStatus.RETRY_PENDING
_ACCEPTED = DeclarationStatus.ACCEPTED
_REJECTED = DeclarationStatus.REJECTED
_FAILED = DeclarationStatus.FAILED

_CALLER = TransitionTrigger.CALLER
_SWEEP = TransitionTrigger.SWEEP
_TRANSPORT = TransitionTrigger.TRANSPORT
_OPERATOR = TransitionTrigger.OPERATOR

_OUTCOME = frozenset({_SWEEP, _TRANSPORT})

type _Edge = tuple[DeclarationStatus, DeclarationStatus]

ALLOWED_TRANSITIONS: Final[Mapping[_Edge, frozenset[TransitionTrigger]]] = MappingProxyType(
    {
        (_DRAFT, _READY): frozenset({_CALLER}),
        (_READY, _DRAFT): frozenset({_CALLER}),
        # first submission attempt
        (_READY, _SUBMITTED): frozenset({_CALLER, _TRANSPORT}),
        (_READY, _RETRY): frozenset({_TRANSPORT}),
        (_READY, _FAILED): frozenset({_TRANSPORT}),
        # outcome tracking
        (_SUBMITTED, _PROCESSING): _OUTCOME,
        (_SUBMITTED, _ACCEPTED): _OUTCOME,
        (_SUBMITTED, _REJECTED): _OUTCOME,
        (_SUBMITTED, _RETRY): _OUTCOME,
        (_SUBMITTED, _FAILED): _OUTCOME,
        (_PROCESSING, _ACCEPTED): _OUTCOME,
        (_PROCESSING, _REJECTED): _OUTCOME,
        (_PROCESSING, _RETRY): _OUTCOME,
        (_PROCESSING, _FAILED): _OUTCOME,
        # retries are only ever picked up by the sweep
        (_RETRY, _SUBMITTED): frozenset({_SWEEP}),
        (_RETRY, _RETRY): frozenset({_SWEEP}),
        (_RETRY, _FAILED): frozenset({_SWEEP}),
        (_FAILED, _READY): frozenset({_OPERATOR}),
    }
)


def allowed_targets(
    status: DeclarationStatus,
    trigger: TransitionTrigger | None = None,
) -> frozenset[DeclarationStatus]:
    return frozenset(
        target
        for (source, target), triggers in ALLOWED_TRANSITIONS.items()
        if source is status and (trigger is None or trigger in triggers)
    )


def is_allowed(
    current: DeclarationStatus,
    target: DeclarationStatus,
    trigger: TransitionTrigger,
) -> bool:
    return trigger in ALLOWED_TRANSITIONS.get((current, target), frozenset())


def ensure_allowed(
    current: DeclarationStatus,
    target: DeclarationStatus,
    trigger: TransitionTrigger,
) -> None:
    if is_allowed(current, target, trigger):
        return
    if (current, target) in ALLOWED_TRANSITIONS:
        raise InvalidTransitionError(
            f"Transition {current} -> {target} cannot be triggered by {trigger}"
        )
    raise InvalidTransitionError(f"Transition {current} -> {target} is not allowed")
