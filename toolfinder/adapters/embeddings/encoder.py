"""
Sentence Embedder - Query embeddings via sentence-transformers.

Features:
- Lazy model loading (first call pays the load cost)
- Encoding off the event loop with a per-call timeout
- Small LRU cache so one search embeds its query once
- Concurrent calls for the same text share a single encode
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from toolfinder.config import EmbeddingError, ErrorCode

logger = logging.getLogger(__name__)

__all__ = ["SentenceTransformerEmbedder"]


class SentenceTransformerEmbedder:
    """
    Query embedder backed by a sentence-transformers model.

    Example:
        >>> embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
        >>> vector = await embedder.embed("react state management")
        >>> vector.shape
        (384,)
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        timeout_seconds: float | None = 8.0,
        cache_size: int = 256,
    ) -> None:
        """
        Initialize embedder.

        Args:
            model_name: Sentence transformer model name
            timeout_seconds: Per-call encode timeout (None disables it)
            cache_size: Number of recent query vectors to keep (0 disables caching)
        """
        self.model_name = model_name
        self._timeout = timeout_seconds
        self._cache_size = cache_size
        self._cache: OrderedDict[str, np.ndarray] = OrderedDict()
        self._inflight: dict[str, asyncio.Future[np.ndarray]] = {}
        self._model: SentenceTransformer | None = None
        self._load_lock = asyncio.Lock()

    async def _get_model(self) -> SentenceTransformer:
        """Load the model once."""
        if self._model is None:
            async with self._load_lock:
                if self._model is None:
                    logger.info("Loading embedding model: %s", self.model_name)
                    self._model = await asyncio.to_thread(SentenceTransformer, self.model_name)
        return self._model

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed a single query.

        Callers asking for the same text while it is being encoded await
        the same result (or the same error).

        Raises:
            EmbeddingError: On load/encode failure or timeout
        """
        key = text.strip()
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._embed_uncached(key))
            self._inflight[key] = pending
            pending.add_done_callback(lambda done: self._settle(key, done))
        # A cancelled caller must not cancel the encode other callers wait on
        return await asyncio.shield(pending)

    async def _embed_uncached(self, key: str) -> np.ndarray:
        vector = (await self._encode([key], timeout=self._timeout))[0]
        self._remember(key, vector)
        return vector

    def _settle(self, key: str, done: asyncio.Future[np.ndarray]) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        if not done.cancelled():
            # Retrieve so an error nobody awaited is not reported as unhandled
            done.exception()

    async def embed_many(self, texts: Sequence[str], batch_size: int = 32) -> np.ndarray:
        """
        Embed a batch of texts (index building). Not cached.

        Returns:
            float32 array of shape (len(texts), dimension)
        """
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        return await self._encode(list(texts), batch_size=batch_size)

    async def _encode(
        self,
        texts: list[str],
        batch_size: int = 32,
        timeout: float | None = None,
    ) -> np.ndarray:
        try:
            model = await self._get_model()
            encoded = await asyncio.wait_for(
                asyncio.to_thread(
                    model.encode,
                    texts,
                    batch_size=batch_size,
                    show_progress_bar=False,
                    convert_to_numpy=True,
                ),
                timeout,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding timed out after {timeout}s",
                {"model": self.model_name},
                code=ErrorCode.EMBEDDING_TIMEOUT,
            ) from e
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}", {"model": self.model_name}) from e

        return np.asarray(encoded, dtype=np.float32).reshape(len(texts), -1)

    def _remember(self, key: str, vector: np.ndarray) -> None:
        if self._cache_size <= 0:
            return
        self._cache[key] = vector
        self._cache.move_to_end(key)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
