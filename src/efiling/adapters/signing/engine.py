"""Strategy-selecting signature engine."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING
from uuid import uuid4

from efiling.documents.fragment import read_fragment
from efiling.domain.clock import system_clock
from efiling.domain.errors import SignatureError
from efiling.domain.model import SignatureType
from efiling.domain.ports.signing import SigningResult

from .strategies import LocalCertificateStrategy, PlaceholderStrategy, TrustedIdentityStrategy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from efiling.domain.clock import Clock
    from efiling.domain.ports.signing import DocumentSigner, IdentityProvider, SigningConfig

    from .certificates import TrustPolicy
    from .strategies import SigningStrategy

log = getLogger(__name__)


def _new_signature_id() -> str:
    return f"sig-{uuid4().hex}"


class SignatureEngine:
    """Pick the strategy named by the signing config, sign, and embed.

    The placeholder strategy is refused unless ``allow_placeholder`` is set.
    Signing an already signed document replaces its fragment.
    """

    def __init__(
        self,
        strategies: Iterable[SigningStrategy],
        *,
        allow_placeholder: bool = False,
        clock: Clock = system_clock,
        id_factory: Callable[[], str] = _new_signature_id,
    ) -> None:
        self._strategies = {strategy.signature_type: strategy for strategy in strategies}
        self._allow_placeholder = allow_placeholder
        self._clock = clock
        self._id_factory = id_factory

    @property
    def available(self) -> dict[SignatureType, str]:
        return {kind: strategy.describe() for kind, strategy in self._strategies.items()}

    def _strategy(self, signature_type: SignatureType) -> SigningStrategy:
        if signature_type is SignatureType.NONE and not self._allow_placeholder:
            raise SignatureError("Placeholder signatures are only allowed in test environments")
        strategy = self._strategies.get(signature_type)
        if strategy is None:
            raise SignatureError(f"No signing strategy configured for {signature_type}")
        return strategy

    def sign(self, document: str, config: SigningConfig) -> SigningResult:
        strategy = self._strategy(config.signature_type)
        signed_at = config.signing_time or self._clock()
        signature_id = self._id_factory()

        artifact = strategy.sign(document, config, signed_at=signed_at)
        signed_document = strategy.embed(document, artifact, signature_id=signature_id)
        fragment = read_fragment(signed_document)
        if fragment is None or fragment.signature_id != signature_id:
            raise SignatureError("Signature fragment was not embedded")

        log.info(f"Created {artifact.signature_type} signature {signature_id}")
        return SigningResult(
            signed_document=signed_document,
            signature_id=signature_id,
            signature_type=artifact.signature_type,
            algorithm=artifact.algorithm,
            content_hash=artifact.content_hash,
            signing_time=artifact.signed_at,
            validation_status=artifact.validation_status,
            signature_value=artifact.value,
            signer=artifact.signer,
            certificate_info=artifact.certificate,
        )


def build_signature_engine(
    *,
    trust: TrustPolicy | None = None,
    identity_provider: IdentityProvider | None = None,
    allow_placeholder: bool = False,
    clock: Clock = system_clock,
) -> SignatureEngine:
    strategies: list[SigningStrategy] = [LocalCertificateStrategy(trust)]
    if identity_provider is not None:
        strategies.append(TrustedIdentityStrategy(identity_provider))
    if allow_placeholder:
        strategies.append(PlaceholderStrategy())
    return SignatureEngine(strategies, allow_placeholder=allow_placeholder, clock=clock)


if TYPE_CHECKING:
    _signer_check: DocumentSigner = SignatureEngine(())
