from abc import ABC, abstractmethod
from typing import Dict, Any

from ..models import Provider, VerificationResult


class Verifier(ABC):
    """
    Authenticity check for one provider's inbound events.

    Implementations return a VerificationResult for both good and bad events;
    raising is reserved for programming errors.
    """

    provider: Provider
    # A failed verification raises VerificationError instead of answering 4xx
    fatal_on_failure: bool = False

    @abstractmethod
    def matches(self, headers: Dict[str, str], payload: Dict[str, Any]) -> bool:
        """
        True when the request carries this provider's signal (header or event type).
        Header names are lower-cased.
        """
        raise NotImplementedError

    @abstractmethod
    async def verify(
        self,
        headers: Dict[str, str],
        raw_body: bytes,
        payload: Dict[str, Any],
    ) -> VerificationResult:
        raise NotImplementedError
