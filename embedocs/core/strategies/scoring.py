"""Post-fusion score adjustments."""
import dataclasses
import logging
from abc import ABC, abstractmethod

from ..models.search import ScoredChunk

logger = logging.getLogger(__name__)


class ScoringStrategy(ABC):
    """Base class for scoring strategies."""

    @abstractmethod
    def apply(self, query: str, results: list[ScoredChunk]) -> list[ScoredChunk]:
        """Apply strategy to results."""
        ...


class _FactorStrategy(ScoringStrategy):
    """Multiply each score by a factor looked up from the candidate."""

    def __init__(self, factors: dict[str, float] | None = None):
        """Initialize strategy.

        Args:
            factors: Key -> multiplier. Unlisted keys keep their score.
        """
        self._factors = dict(factors or {})

    @abstractmethod
    def _key(self, candidate: ScoredChunk) -> str:
        ...

    def apply(self, query: str, results: list[ScoredChunk]) -> list[ScoredChunk]:
        """Scale scores; order is left to the caller."""
        if not self._factors or not results:
            return results

        adjusted = []
        changed = 0
        for result in results:
            factor = self._factors.get(self._key(result))
            if factor is None or factor == 1.0:
                adjusted.append(result)
                continue
            adjusted.append(dataclasses.replace(result, score=result.score * factor))
            changed += 1

        if changed:
            logger.debug(f"{type(self).__name__}: {changed} scores adjusted")

        return adjusted


class ContentTypeBoostStrategy(_FactorStrategy):
    """Boost or penalize by content-quality classification (e.g. meta 0.3)."""

    def _key(self, candidate: ScoredChunk) -> str:
        return candidate.metadata.content_type.value


class ProductBoostStrategy(_FactorStrategy):
    """Boost or penalize by product tag."""

    def _key(self, candidate: ScoredChunk) -> str:
        return candidate.metadata.product
