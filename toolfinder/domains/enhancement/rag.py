"""
RAG Enhancer - Generated summaries and relevance explanations for search results.

The top-K ranked entities form a shared context block; each entity to
enhance gets one completion call with that context and its own fields.
Enhancement is additive: a failed call leaves that entity's generated
fields null, and the result list always matches the input order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from toolfinder.config import EnhancementError, attempt

from .contracts import CompletionClient
from .models import EnhancedResult

logger = logging.getLogger(__name__)

__all__ = [
    "RagEnhancer",
    "build_context",
    "build_prompt",
    "extract_json_object",
    "parse_enhancement",
]

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

PROMPT_TEMPLATE = """You are helping enhance search results for a developer tool discovery platform.

User Query: "{query}"

Context (related results):
{context}

Current Result to Enhance:
Title: {title}
Description: {description}
Type: {type}
URL: {url}

Please provide:
1. A concise, enhanced summary (2-3 sentences) that explains why this result is relevant to the query
2. A brief explanation of how this result relates to the query and the context provided

Format your response as JSON:
{{
  "summary": "Enhanced summary here",
  "relevance_explanation": "Why this is relevant to the query"
}}"""


def _fields(entity: Any) -> list[tuple[str, str]]:
    context_fields = getattr(entity, "context_fields", None)
    if callable(context_fields):
        return context_fields()
    return [("Title", str(entity))]


def build_context(entities: Sequence[Any]) -> str:
    """Format entities as numbered blocks separated by blank lines."""
    blocks = []
    for index, entity in enumerate(entities, 1):
        lines = [f"Result {index}:"]
        lines.extend(f"{label}: {value}" for label, value in _fields(entity))
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def build_prompt(query: str, entity: Any, context: str) -> str:
    fields = dict(_fields(entity))
    return PROMPT_TEMPLATE.format(
        query=query,
        context=context,
        title=fields.get("Title", "N/A"),
        description=fields.get("Description", "N/A"),
        type=fields.get("Type", "N/A"),
        url=fields.get("URL", "N/A"),
    )


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Find a JSON object in model output that may wrap it in prose or fences.

    Tries the outermost ``{...}`` span first, then the first decodable
    object starting at any ``{``.

    Returns:
        Parsed object, or None if no JSON object is present
    """
    match = _JSON_BLOCK.search(text)
    if not match:
        return None

    try:
        parsed = json.loads(match.group(0))
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for start in (m.start() for m in re.finditer(r"\{", text)):
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def parse_enhancement(text: str) -> tuple[str | None, str | None]:
    """
    Parse ``{summary, relevance_explanation}`` from model output.

    Raises:
        EnhancementError: If the output holds no JSON object
    """
    parsed = extract_json_object(text or "")
    if parsed is None:
        raise EnhancementError("No JSON object in model response", {"response": (text or "")[:200]})

    summary = parsed.get("summary")
    explanation = parsed.get("relevance_explanation")
    return (
        summary if isinstance(summary, str) and summary.strip() else None,
        explanation if isinstance(explanation, str) and explanation.strip() else None,
    )


class RagEnhancer:
    """
    Best-effort enhancement of ranked search results.

    Example:
        >>> enhancer = RagEnhancer(llm_service, top_k=5)
        >>> results = await enhancer.enhance("react hooks", submissions)
        >>> results[0].summary
    """

    def __init__(
        self,
        client: CompletionClient,
        top_k: int = 5,
        concurrency: int = 4,
    ) -> None:
        """
        Initialize enhancer.

        Args:
            client: Generative completion backend
            top_k: Default number of entities used as context
            concurrency: Maximum completion calls in flight
        """
        self._client = client
        self._top_k = max(1, top_k)
        self._concurrency = max(1, concurrency)

    async def enhance(
        self,
        query: str,
        entities: Sequence[Any],
        top_k: int | None = None,
        enhance_all: bool = False,
    ) -> list[EnhancedResult]:
        """
        Enhance ranked entities.

        Args:
            query: Original search query
            entities: Ranked entities, best first
            top_k: Context size (defaults to the configured top_k)
            enhance_all: Enhance every entity instead of only the top-K

        Returns:
            One EnhancedResult per entity, in input order
        """
        query = (query or "").strip()
        entities = list(entities)
        plain = [EnhancedResult.plain(e) for e in entities]
        if not query or not entities:
            return plain

        k = max(1, top_k) if top_k is not None else self._top_k
        try:
            context = build_context(entities[:k])
            targets = entities if enhance_all else entities[:k]
            semaphore = asyncio.Semaphore(self._concurrency)
            enhanced = await asyncio.gather(
                *(self._enhance_bounded(query, e, context, semaphore) for e in targets)
            )
        except Exception as e:
            logger.error("RAG enhancement failed: %s", e)
            return plain

        logger.info(
            "Enhanced %d/%d results for query='%s'",
            sum(1 for r in enhanced if r.enhanced),
            len(entities),
            query[:50],
        )
        return list(enhanced) + plain[len(enhanced) :]

    async def _enhance_bounded(
        self,
        query: str,
        entity: Any,
        context: str,
        semaphore: asyncio.Semaphore,
    ) -> EnhancedResult:
        async with semaphore:
            outcome = await attempt(
                self._enhance_one,
                query,
                entity,
                context,
                label=f"Enhancement of result {getattr(entity, 'id', '?')}",
            )
        return outcome.unwrap_or(EnhancedResult.plain(entity))

    async def _enhance_one(self, query: str, entity: Any, context: str) -> EnhancedResult:
        response = await self._client.complete(build_prompt(query, entity, context))
        summary, explanation = parse_enhancement(response)
        return EnhancedResult(
            entity=entity,
            entity_id=getattr(entity, "id", None),
            summary=summary,
            relevance_explanation=explanation,
        )
