"""
Search Providers - Lexical and semantic candidate retrieval.

Providers are fail-open: a backend or embedding error is logged and the
provider contributes no candidates, so the category degrades to whatever
the other provider found.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from toolfinder.config import attempt

from .contracts import LexicalFetch, NearestFetch, QueryEmbedder
from .models import Candidate

logger = logging.getLogger(__name__)

__all__ = ["LexicalSearchProvider", "SemanticSearchProvider"]


class LexicalSearchProvider:
    """
    Keyword / full-text candidates for one entity type.

    The store returns relevance (higher is better); candidates carry
    ``best - relevance`` as their rank so the best match has rank 0.

    Example:
        >>> provider = LexicalSearchProvider("tools", repo.keyword_tools)
        >>> candidates = await provider.search("react", ToolScope(), limit=100)
    """

    def __init__(self, name: str, fetch: LexicalFetch) -> None:
        self.name = name
        self._fetch = fetch

    async def search(self, query: str, scope: Any, limit: int) -> list[Candidate]:
        """
        Run the lexical match.

        Args:
            query: Trimmed query text
            scope: Entity-specific filters
            limit: Maximum candidates to return

        Returns:
            Candidates in store order, empty on any failure
        """
        if not query:
            return []

        outcome = await attempt(
            self._fetch, query, scope, limit, label=f"{self.name} lexical search"
        )
        rows: list[tuple[Any, float]] = outcome.unwrap_or([])
        if not rows:
            return []

        best = max(relevance for _, relevance in rows)
        return [
            Candidate(
                entity_id=entity.id,
                entity=entity,
                lexical_rank=best - relevance,
            )
            for entity, relevance in rows
        ]


class SemanticSearchProvider:
    """
    Embedding nearest-neighbor candidates for one entity type.

    Example:
        >>> provider = SemanticSearchProvider("submissions", embedder, repo.nearest_submissions)
        >>> candidates = await provider.search("react hooks", SubmissionScope(), limit=100)
    """

    def __init__(
        self,
        name: str,
        embedder: QueryEmbedder,
        nearest: NearestFetch,
        max_distance: float = 0.8,
        overfetch: int = 2,
    ) -> None:
        """
        Initialize semantic provider.

        Args:
            name: Label used in logs
            embedder: Query embedding backend
            nearest: Store kNN query for this entity type
            max_distance: Relevance floor; candidates at or beyond it are dropped
            overfetch: Multiplier applied to the requested limit
        """
        self.name = name
        self._embedder = embedder
        self._nearest = nearest
        self._max_distance = max_distance
        self._overfetch = overfetch

    async def search(self, query: str, scope: Any, limit: int) -> list[Candidate]:
        """
        Embed the query and return nearest candidates by ascending distance.

        Returns at most ``limit * overfetch`` candidates, all with cosine
        distance strictly below ``max_distance``. Empty on any failure.
        """
        if not query:
            return []

        embedded = await attempt(
            self._embedder.embed, query, label=f"{self.name} query embedding"
        )
        vector: np.ndarray | None = embedded.value if embedded.ok else None
        if vector is None:
            return []

        found = await attempt(
            self._nearest,
            vector,
            scope,
            limit * self._overfetch,
            self._max_distance,
            label=f"{self.name} semantic search",
        )
        rows: list[tuple[Any, float]] = found.unwrap_or([])

        # Floor holds even if the store ignores max_distance
        candidates = [
            Candidate(entity_id=entity.id, entity=entity, semantic_distance=distance)
            for entity, distance in rows
            if distance < self._max_distance
        ]
        logger.debug("%s semantic search -> %d candidates", self.name, len(candidates))
        return candidates[: limit * self._overfetch]
