from abc import ABC, abstractmethod
from typing import Optional

from contract_intake.schemas.analysis import ExtractionStrategy, FieldBundle


class FieldExtractor(ABC):
    """One way of turning contract text into a field bundle."""

    strategy: ExtractionStrategy

    def is_available(self) -> bool:
        return True

    @abstractmethod
    async def extract(self, text: str, title: Optional[str] = None) -> FieldBundle:
        """Extract contract fields.

        Raises:
            ExtractionError: when the strategy cannot produce a bundle
        """
