"""
Result Fusion - Weighted merge of lexical and semantic candidates.

Both signals are normalized against the worst value in their own list and
inverted so that higher is better:

    lexical  += w_lex * (1 - rank / (max_rank + smoothing))
    semantic += w_sem * (1 - distance / max_distance)

Contributions are additive per entity id, so an entity found by both
providers outranks one found by a single provider with the same raw inputs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

from .models import Candidate, FusedResult, FusionConfig

logger = logging.getLogger(__name__)

__all__ = ["FusionEngine"]


class FusionEngine:
    """
    Merges per-provider candidate lists into one ranked list.

    Example:
        >>> engine = FusionEngine()
        >>> fused = engine.combine(lexical, semantic)
        >>> [r.entity_id for r in fused]
    """

    def __init__(self, config: FusionConfig | None = None) -> None:
        self.config = config or FusionConfig()

    def combine(
        self,
        lexical: Sequence[Candidate],
        semantic: Sequence[Candidate],
    ) -> list[FusedResult]:
        """
        Fuse candidates into a deduplicated list, best first.

        Ties keep insertion order: lexical candidates in provider order,
        then semantic-only candidates in provider order.
        """
        fused: dict[int, FusedResult] = {}

        if lexical:
            max_rank = max(_rank(c) for c in lexical)
            for candidate in _unique(lexical):
                normalized = _rank(candidate) / (max_rank + self.config.rank_smoothing)
                score = self.config.lexical_weight * (1.0 - normalized)
                entry = self._entry(fused, candidate)
                entry.lexical_score += score
                entry.combined_score += score

        if semantic:
            max_distance = max(_distance(c) for c in semantic)
            for candidate in _unique(semantic):
                distance = _distance(candidate)
                normalized = distance / max_distance if max_distance > 0 else 0.0
                score = self.config.semantic_weight * (1.0 - normalized)
                entry = self._entry(fused, candidate)
                entry.semantic_score += score
                entry.combined_score += score

        # sorted() is stable
        results = sorted(fused.values(), key=lambda r: r.combined_score, reverse=True)

        logger.debug(
            "Fused %d results (lexical=%d, semantic=%d)",
            len(results),
            len(lexical),
            len(semantic),
        )
        return results

    @staticmethod
    def _entry(fused: dict[int, FusedResult], candidate: Candidate) -> FusedResult:
        entry = fused.get(candidate.entity_id)
        if entry is None:
            entry = FusedResult(entity_id=candidate.entity_id, entity=candidate.entity)
            fused[candidate.entity_id] = entry
        return entry


def _unique(candidates: Sequence[Candidate]) -> Iterator[Candidate]:
    """First occurrence of each entity id within one provider list."""
    seen: set[int] = set()
    for candidate in candidates:
        if candidate.entity_id not in seen:
            seen.add(candidate.entity_id)
            yield candidate


def _rank(candidate: Candidate) -> float:
    # Missing rank counts as the best rank; negative ranks are clipped
    return max(candidate.lexical_rank or 0.0, 0.0)


def _distance(candidate: Candidate) -> float:
    return max(candidate.semantic_distance or 0.0, 0.0)
