"""Tests for the catalog repository."""

from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import pytest

from toolfinder.config import ValidationError
from toolfinder.domains.catalog import (
    SubmissionScope,
    SubmissionStatus,
    SubmissionType,
    ToolScope,
    UserStatus,
    Visibility,
)

from .repository import CatalogRepository, fts_query, like_pattern


def day(month: int, dom: int = 1) -> datetime:
    return datetime(2024, month, dom, tzinfo=timezone.utc)


@pytest.fixture
async def repo(tmp_path: Path):
    """Create a test repository with temporary database."""
    repo = CatalogRepository(tmp_path / "test.db")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
async def catalog(repo: CatalogRepository) -> dict[str, int]:
    """Seed tools and submissions; returns ids by short name."""
    ada = await repo.add_user("ada", user_bio="Frontend dev")
    ids = {"ada": ada}

    ids["react_native"] = await repo.add_tool(ada, "React Native", created_at=day(1))
    ids["preact"] = await repo.add_tool(
        ada, "Preact", tool_description="Fast alternative to React", created_at=day(3)
    )
    ids["vite"] = await repo.add_tool(ada, "Vite", tags=["react", "build"], created_at=day(2))
    ids["private_react"] = await repo.add_tool(
        ada, "React", visibility=Visibility.PRIVATE, created_at=day(5)
    )
    ids["django"] = await repo.add_tool(ada, "Django", created_at=day(6))
    ids["react"] = await repo.add_tool(ada, "React", created_at=day(4))

    ids["hooks"] = await repo.add_submission(
        ada,
        "React hooks guide",
        submission_description="Learn hooks step by step",
        tags=["react"],
        tool_ids=[ids["react"]],
    )
    ids["turbo"] = await repo.add_submission(
        ada, "Turbo vs React", submission_type=SubmissionType.VIDEO
    )
    ids["pending"] = await repo.add_submission(
        ada, "React internals", status=SubmissionStatus.PENDING
    )
    ids["django_tips"] = await repo.add_submission(
        ada, "Django tips", submission_description="Views and models"
    )
    ids["tailwind"] = await repo.add_submission(
        ada, "Tailwind", submission_description="Utility-first CSS tricks"
    )
    return ids


# --- Helpers ---


def test_like_pattern_escapes_wildcards():
    assert like_pattern("100%") == "%100\\%%"
    assert like_pattern("a_b", prefix=True) == "a\\_b%"
    assert like_pattern("c:\\x") == "%c:\\\\x%"


def test_fts_query_quotes_prefix_terms():
    assert fts_query('react "hooks" OR') == '"react"* "hooks"* "OR"*'
    assert fts_query("!!!") == ""


# --- Schema ---


async def test_initialize_creates_tables(repo: CatalogRepository):
    """Test that initialize creates all required tables."""
    conn = await repo._get_connection()
    cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row[0] for row in await cursor.fetchall()}

    for table in ("users", "tags", "tools", "tool_tags", "submissions", "lists", "submissions_fts"):
        assert table in tables


async def test_initialize_is_idempotent(repo: CatalogRepository):
    await repo.initialize()
    assert (await repo.counts())["tools"] == 0


# --- Tools ---


async def test_keyword_tools_prefix_first_then_recency(repo: CatalogRepository, catalog):
    rows = await repo.keyword_tools("react", ToolScope(), limit=20)

    assert [tool.id for tool, _ in rows] == [
        catalog["react"],
        catalog["react_native"],
        catalog["preact"],
        catalog["vite"],
    ]
    assert all(relevance == 1.0 for _, relevance in rows)


async def test_keyword_tools_distinct_and_hydrated(repo: CatalogRepository, catalog):
    rows = await repo.keyword_tools("vite", ToolScope(), limit=20)

    assert len(rows) == 1
    assert rows[0][0].tags == ["build", "react"]


async def test_keyword_tools_limit(repo: CatalogRepository, catalog):
    rows = await repo.keyword_tools("react", ToolScope(), limit=2)
    assert len(rows) == 2


async def test_keyword_tools_literal_percent(repo: CatalogRepository):
    user = await repo.add_user("bob")
    coverage = await repo.add_tool(user, "100% Coverage")
    await repo.add_tool(user, "1000 things")

    rows = await repo.keyword_tools("100%", ToolScope(), limit=10)

    assert [tool.id for tool, _ in rows] == [coverage]


# --- Submissions ---


async def test_fulltext_submissions_completed_only(repo: CatalogRepository, catalog):
    rows = await repo.fulltext_submissions("react", SubmissionScope(), limit=20)

    assert {s.id for s, _ in rows} == {catalog["hooks"], catalog["turbo"]}
    relevances = [relevance for _, relevance in rows]
    assert relevances == sorted(relevances, reverse=True)
    assert all(relevance > 0 for relevance in relevances)


async def test_fulltext_submissions_prefix_match(repo: CatalogRepository, catalog):
    rows = await repo.fulltext_submissions("reac", SubmissionScope(), limit=20)
    assert {s.id for s, _ in rows} == {catalog["hooks"], catalog["turbo"]}


async def test_fulltext_submissions_description_match(repo: CatalogRepository, catalog):
    rows = await repo.fulltext_submissions("views", SubmissionScope(), limit=20)
    assert [s.id for s, _ in rows] == [catalog["django_tips"]]


async def test_fulltext_submissions_type_filter(repo: CatalogRepository, catalog):
    scope = SubmissionScope(submission_type=SubmissionType.VIDEO)
    rows = await repo.fulltext_submissions("react", scope, limit=20)
    assert [s.id for s, _ in rows] == [catalog["turbo"]]


async def test_fulltext_submissions_trigram_typo(repo: CatalogRepository, catalog):
    rows = await repo.fulltext_submissions("tailwnd", SubmissionScope(), limit=20)
    assert [s.id for s, _ in rows] == [catalog["tailwind"]]


async def test_fulltext_submissions_without_words(repo: CatalogRepository, catalog):
    assert await repo.fulltext_submissions("!!!", SubmissionScope(), limit=20) == []


async def test_fulltext_submissions_hydrates_associations(repo: CatalogRepository, catalog):
    rows = await repo.fulltext_submissions("hooks", SubmissionScope(), limit=20)
    submission = rows[0][0]

    assert submission.id == catalog["hooks"]
    assert submission.username == "ada"
    assert submission.tags == ["react"]
    assert submission.tools == ["React"]


# --- Vector search ---


async def test_nearest_submissions_floor_and_order(repo: CatalogRepository, catalog):
    await repo.set_embedding("submissions", catalog["hooks"], np.array([1.0, 0.0, 0.0]))
    await repo.set_embedding("submissions", catalog["turbo"], np.array([0.8, 0.6, 0.0]))
    await repo.set_embedding("submissions", catalog["django_tips"], np.array([0.0, 1.0, 0.0]))
    await repo.set_embedding("submissions", catalog["pending"], np.array([1.0, 0.0, 0.0]))
    await repo.set_embedding("submissions", catalog["tailwind"], np.array([1.0, 0.0]))

    rows = await repo.nearest_submissions(
        np.array([1.0, 0.0, 0.0]), SubmissionScope(), limit=10, max_distance=0.8
    )

    assert [s.id for s, _ in rows] == [catalog["hooks"], catalog["turbo"]]
    assert rows[0][1] == pytest.approx(0.0, abs=1e-6)
    assert rows[1][1] == pytest.approx(0.2, abs=1e-6)
    assert all(distance < 0.8 for _, distance in rows)


async def test_nearest_submissions_limit_and_type(repo: CatalogRepository, catalog):
    await repo.set_embedding("submissions", catalog["hooks"], np.array([1.0, 0.0, 0.0]))
    await repo.set_embedding("submissions", catalog["turbo"], np.array([0.8, 0.6, 0.0]))

    rows = await repo.nearest_submissions(
        np.array([1.0, 0.0, 0.0]), SubmissionScope(), limit=1, max_distance=0.8
    )
    assert [s.id for s, _ in rows] == [catalog["hooks"]]

    video = SubmissionScope(submission_type=SubmissionType.VIDEO)
    rows = await repo.nearest_submissions(np.array([1.0, 0.0, 0.0]), video, limit=10, max_distance=0.8)
    assert [s.id for s, _ in rows] == [catalog["turbo"]]


async def test_nearest_tools_ties_by_id_and_public_only(repo: CatalogRepository, catalog):
    for key in ("vite", "react_native", "private_react"):
        await repo.set_embedding("tools", catalog[key], np.array([0.0, 1.0]))
    await repo.set_embedding("tools", catalog["django"], np.array([0.0, 0.0]))

    rows = await repo.nearest_tools(np.array([0.0, 2.0]), ToolScope(), limit=10, max_distance=0.8)

    assert [t.id for t, _ in rows] == sorted([catalog["vite"], catalog["react_native"]])


async def test_nearest_without_embeddings(repo: CatalogRepository, catalog):
    rows = await repo.nearest_tools(np.array([1.0, 0.0]), ToolScope(), limit=10, max_distance=0.8)
    assert rows == []


async def test_set_embedding_unknown_kind(repo: CatalogRepository):
    with pytest.raises(ValidationError):
        await repo.set_embedding("tags", 1, np.array([1.0]))


async def test_entities_missing_embeddings(repo: CatalogRepository, catalog):
    await repo.set_embedding("tools", catalog["vite"], np.array([1.0, 0.0]))

    missing = await repo.entities_missing_embeddings("tools")

    assert catalog["vite"] not in {t.id for t in missing}
    assert len(missing) == 5
    counts = await repo.counts()
    assert counts["tools"] == 6
    assert counts["tools_embedded"] == 1
    assert counts["submissions"] == 5


# --- Tags, users, lists ---


async def test_search_tags_prefix_first_with_total(repo: CatalogRepository):
    await repo.add_tag("react", created_at=day(1))
    await repo.add_tag("preact", created_at=day(3))
    await repo.add_tag("react-native", created_at=day(2))
    await repo.add_tag("django", created_at=day(4))

    tags, total = await repo.search_tags("react", limit=2, offset=0)
    assert total == 3
    assert [t.tag_name for t in tags] == ["react-native", "react"]

    tags, total = await repo.search_tags("react", limit=2, offset=2)
    assert total == 3
    assert [t.tag_name for t in tags] == ["preact"]


async def test_search_users_active_only(repo: CatalogRepository):
    await repo.add_user("ada", user_bio="React fan", created_at=day(1))
    await repo.add_user("reactor", created_at=day(2))
    await repo.add_user("ghost", user_bio="react", user_status=UserStatus.DELETED)

    users, total = await repo.search_users("react", limit=10, offset=0)

    assert total == 2
    assert [u.username for u in users] == ["reactor", "ada"]


async def test_search_lists_public_name_or_owner(repo: CatalogRepository):
    ada = await repo.add_user("ada")
    reactor = await repo.add_user("reactor")
    vite = await repo.add_tool(ada, "Vite")
    picks = await repo.add_list(
        ada, "React picks", visibility=Visibility.PUBLIC, tool_ids=[vite], created_at=day(1)
    )
    await repo.add_list(ada, "React secret", visibility=Visibility.PRIVATE)
    misc = await repo.add_list(reactor, "Misc", visibility=Visibility.PUBLIC, created_at=day(2))

    lists, total = await repo.search_lists("react", limit=10, offset=0)

    assert total == 2
    assert [tl.id for tl in lists] == [picks, misc]
    assert lists[0].tool_names == ["Vite"]
    assert lists[1].username == "reactor"


async def test_get_tool_and_submission(repo: CatalogRepository, catalog):
    tool = await repo.get_tool(catalog["vite"])
    assert tool is not None and tool.tool_name == "Vite"
    assert await repo.get_tool(9999) is None

    submission = await repo.get_submission(catalog["turbo"])
    assert submission is not None
    assert submission.submission_type == SubmissionType.VIDEO
