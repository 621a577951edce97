"""
Tests for RAG enhancement.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from toolfinder.config import EnhancementError, LLMError
from toolfinder.domains.catalog import Submission, SubmissionType, Tool

from .contracts import ResultEnhancer
from .models import EnhancedResult
from .rag import (
    RagEnhancer,
    build_context,
    build_prompt,
    extract_json_object,
    parse_enhancement,
)

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_submission(submission_id: int, name: str, **kwargs) -> Submission:
    return Submission(id=submission_id, user_id=1, submission_name=name, created_at=NOW, **kwargs)


def reply_for(prompt: str) -> str:
    """Echo the title of the enhanced result back as its summary."""
    title = prompt.split("Current Result to Enhance:\nTitle: ", 1)[1].split("\n", 1)[0]
    return (
        "Sure! Here is the JSON:\n```json\n"
        f'{{"summary": "About {title}", "relevance_explanation": "Mentions react"}}\n```'
    )


@pytest.fixture
def submissions() -> list[Submission]:
    return [make_submission(i, f"Post {i}") for i in range(1, 8)]


@pytest.fixture
def client() -> AsyncMock:
    mock = AsyncMock()
    mock.complete.side_effect = reply_for
    return mock


# --- Context and prompt ---


def test_build_context_formats_numbered_blocks() -> None:
    entities = [
        make_submission(
            1,
            "React vs Turbo",
            submission_description="Comparison",
            submission_type=SubmissionType.ARTICLE,
            submission_url="https://example.com/a",
            tags=["react", "hotwire"],
            tools=["React"],
        ),
        Tool(id=2, user_id=1, tool_name="Vite", created_at=NOW),
    ]

    context = build_context(entities)

    assert context == (
        "Result 1:\n"
        "Title: React vs Turbo\n"
        "Description: Comparison\n"
        "Type: article\n"
        "URL: https://example.com/a\n"
        "Tags: react, hotwire\n"
        "Tools: React"
        "\n\n"
        "Result 2:\n"
        "Title: Vite\n"
        "Type: tool"
    )


def test_build_prompt_fills_missing_fields() -> None:
    prompt = build_prompt("react", make_submission(1, "Hooks"), "ctx")

    assert 'User Query: "react"' in prompt
    assert "Title: Hooks" in prompt
    assert "Description: N/A" in prompt
    assert "URL: N/A" in prompt
    assert '"relevance_explanation"' in prompt


# --- JSON extraction ---


def test_extract_json_object_from_prose() -> None:
    text = 'Here you go: {"summary": "A", "relevance_explanation": "B"} Hope that helps.'
    assert extract_json_object(text) == {"summary": "A", "relevance_explanation": "B"}


def test_extract_json_object_with_trailing_braces() -> None:
    """Greedy span fails to parse; the scanner still finds the object."""
    text = '{"summary": "A", "relevance_explanation": "B"} and also {not json}'
    assert extract_json_object(text) == {"summary": "A", "relevance_explanation": "B"}


def test_extract_json_object_none() -> None:
    assert extract_json_object("no json here") is None
    assert extract_json_object("{broken") is None


def test_parse_enhancement_blank_fields_become_none() -> None:
    assert parse_enhancement('{"summary": "  ", "relevance_explanation": 3}') == (None, None)


def test_parse_enhancement_requires_object() -> None:
    with pytest.raises(EnhancementError):
        parse_enhancement("I cannot help with that.")


# --- RagEnhancer ---


async def test_enhance_top_k_only(client: AsyncMock, submissions: list[Submission]) -> None:
    enhancer = RagEnhancer(client, top_k=3)

    results = await enhancer.enhance("react", submissions)

    assert [r.entity.id for r in results] == [s.id for s in submissions]
    assert [r.summary for r in results[:3]] == ["About Post 1", "About Post 2", "About Post 3"]
    assert all(r.summary is None and r.relevance_explanation is None for r in results[3:])
    assert client.complete.await_count == 3


async def test_enhance_all(client: AsyncMock, submissions: list[Submission]) -> None:
    enhancer = RagEnhancer(client, top_k=2)

    results = await enhancer.enhance("react", submissions, enhance_all=True)

    assert all(r.enhanced for r in results)
    assert results[6].summary == "About Post 7"
    assert client.complete.await_count == 7
    # Context is still limited to the top-K
    prompt = client.complete.await_args_list[0].args[0]
    assert "Result 2:" in prompt
    assert "Result 3:" not in prompt


async def test_enhance_explicit_top_k(client: AsyncMock, submissions: list[Submission]) -> None:
    enhancer = RagEnhancer(client, top_k=5)

    results = await enhancer.enhance("react", submissions, top_k=1)

    assert results[0].enhanced
    assert not results[1].enhanced


async def test_per_entity_failure_keeps_entity(submissions: list[Submission]) -> None:
    async def flaky(prompt: str) -> str:
        if "Title: Post 2" in prompt.split("Current Result to Enhance:")[1]:
            raise LLMError("connection reset")
        return reply_for(prompt)

    client = AsyncMock()
    client.complete.side_effect = flaky
    enhancer = RagEnhancer(client, top_k=3)

    results = await enhancer.enhance("react", submissions)

    assert results[0].summary == "About Post 1"
    assert results[1].entity.id == 2
    assert results[1].summary is None
    assert results[2].summary == "About Post 3"


async def test_malformed_response_falls_back(submissions: list[Submission]) -> None:
    client = AsyncMock()
    client.complete.return_value = "Sorry, I am unable to produce JSON today."
    enhancer = RagEnhancer(client, top_k=2)

    results = await enhancer.enhance("react", submissions[:2])

    assert [r.entity.id for r in results] == [1, 2]
    assert not any(r.enhanced for r in results)


async def test_blank_query_skips_generation(client: AsyncMock, submissions: list[Submission]) -> None:
    enhancer = RagEnhancer(client)

    results = await enhancer.enhance("  ", submissions)

    assert len(results) == len(submissions)
    assert all(isinstance(r, EnhancedResult) and not r.enhanced for r in results)
    client.complete.assert_not_awaited()


async def test_empty_input(client: AsyncMock) -> None:
    enhancer = RagEnhancer(client)
    assert await enhancer.enhance("react", []) == []


def test_rag_enhancer_satisfies_result_enhancer(client: AsyncMock) -> None:
    assert isinstance(RagEnhancer(client), ResultEnhancer)
