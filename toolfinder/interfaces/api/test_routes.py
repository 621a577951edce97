"""Tests for API Routes."""

from collections.abc import Generator
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from toolfinder.config import ErrorCode, Settings, ToolfinderError, get_settings
from toolfinder.domains.catalog import Submission, SubmissionStatus, SubmissionType, Tool
from toolfinder.domains.enhancement import EnhancedResult, ResultEnhancer
from toolfinder.domains.search import (
    Category,
    GlobalSearchService,
    PagedResult,
    SearchConfig,
    build_adapters,
)

from .deps import get_enhancer, get_search_service
from .main import create_app
from .middleware import RateLimitMiddleware, WindowCounter, error_status

CREATED = datetime(2024, 1, 1)


def tool(tool_id: int, name: str) -> Tool:
    return Tool(id=tool_id, user_id=1, tool_name=name, created_at=CREATED)


def submission(submission_id: int, name: str) -> Submission:
    return Submission(
        id=submission_id,
        user_id=1,
        submission_name=name,
        status=SubmissionStatus.COMPLETED,
        created_at=CREATED,
    )


async def fake_search(query, categories=None, pages=None, per_page=None, **kwargs):
    """Echo the requested pages back as empty results for every selected category."""
    config = SearchConfig()
    per_page = config.clamp_per_page(per_page)
    results = {}
    for category in Category.select(categories):
        page = config.parse_page((pages or {}).get(category.page_param))
        results[category] = PagedResult.empty(page, per_page)
    return results


@pytest.fixture
def mock_service() -> AsyncMock:
    """Create a mock search orchestrator."""
    mock = AsyncMock()
    mock.config = SearchConfig()
    mock.search.side_effect = fake_search
    return mock


@pytest.fixture
def mock_enhancer() -> AsyncMock:
    """Create a mock RAG enhancer."""
    mock = AsyncMock()
    mock.enhance.side_effect = lambda query, items: [
        EnhancedResult(entity=e, entity_id=e.id, summary=f"About {e.submission_name}")
        for e in items
    ]
    return mock


@pytest.fixture
def client(mock_service: AsyncMock, mock_enhancer: AsyncMock) -> Generator[TestClient, None, None]:
    """Create a test client with mocked dependencies."""
    app = create_app()

    app.dependency_overrides[get_search_service] = lambda: mock_service
    app.dependency_overrides[get_enhancer] = lambda: mock_enhancer
    app.dependency_overrides[get_settings] = lambda: Settings()

    yield TestClient(app)

    app.dependency_overrides.clear()


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "toolfinder"


def test_api_info(client: TestClient) -> None:
    data = client.get("/api").json()
    assert data["name"] == "Toolfinder API"
    assert data["docs"] == "/docs"


def test_search_returns_every_category(client: TestClient) -> None:
    response = client.get("/api/search", params={"query": "react"})

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "react"
    assert set(data["results"]) == {"tools", "submissions", "tags", "users", "lists"}
    assert data["enhanced"] is None


def test_search_passes_independent_pages(client: TestClient, mock_service: AsyncMock) -> None:
    response = client.get(
        "/api/search",
        params={"query": "react", "tools_page": 3, "users_page": "abc"},
    )

    pages = mock_service.search.call_args.kwargs["pages"]
    assert pages["tools_page"] == "3"
    assert pages["submissions_page"] is None

    results = response.json()["results"]
    assert results["tools"]["page"] == 3
    assert results["users"]["page"] == 1
    assert results["tags"]["page"] == 1


@pytest.mark.parametrize(("requested", "expected"), [(500, 50), (0, 1), (-4, 1), (25, 25)])
def test_search_clamps_per_page(
    client: TestClient, mock_service: AsyncMock, requested: int, expected: int
) -> None:
    response = client.get("/api/search", params={"query": "react", "per_page": requested})

    assert response.status_code == 200
    assert mock_service.search.call_args.kwargs["per_page"] == expected


def test_search_default_per_page(client: TestClient, mock_service: AsyncMock) -> None:
    client.get("/api/search", params={"query": "react"})
    assert mock_service.search.call_args.kwargs["per_page"] == 10


def test_search_selected_categories(client: TestClient, mock_service: AsyncMock) -> None:
    response = client.get(
        "/api/search",
        params=[("query", "react"), ("categories", "tools"), ("categories", "bogus")],
    )

    assert mock_service.search.call_args.kwargs["categories"] == ["tools", "bogus"]
    assert set(response.json()["results"]) == {"tools"}


def test_search_flags_forwarded(client: TestClient, mock_service: AsyncMock) -> None:
    client.get("/api/search", params={"query": "react", "semantic": "false", "fulltext": "false"})

    kwargs = mock_service.search.call_args.kwargs
    assert kwargs["use_semantic"] is False
    assert kwargs["use_fulltext"] is False


def test_search_serializes_items(client: TestClient, mock_service: AsyncMock) -> None:
    mock_service.search.side_effect = None
    mock_service.search.return_value = {
        Category.TOOLS: PagedResult(
            items=[tool(1, "React"), tool(2, "Preact")], total_count=12, page=1, per_page=2
        ),
    }

    data = client.get("/api/search", params={"query": "react", "per_page": 2}).json()

    tools = data["results"]["tools"]
    assert [item["tool_name"] for item in tools["items"]] == ["React", "Preact"]
    assert tools["total_count"] == 12
    assert tools["has_more"] is True


def test_search_enhance_submissions(
    client: TestClient, mock_service: AsyncMock, mock_enhancer: AsyncMock
) -> None:
    mock_service.search.side_effect = None
    mock_service.search.return_value = {
        Category.SUBMISSIONS: PagedResult(
            items=[submission(5, "Hooks guide")], total_count=1, page=1, per_page=10
        ),
    }

    data = client.get("/api/search", params={"query": "hooks", "enhance": "true"}).json()

    mock_enhancer.enhance.assert_awaited_once()
    assert data["enhanced"][0]["entity_id"] == 5
    assert data["enhanced"][0]["summary"] == "About Hooks guide"
    assert data["enhanced"][0]["relevance_explanation"] is None


def test_search_without_enhance_skips_llm(client: TestClient, mock_enhancer: AsyncMock) -> None:
    client.get("/api/search", params={"query": "hooks"})
    mock_enhancer.enhance.assert_not_awaited()


def test_suggestions_short_query_skips_search(client: TestClient, mock_service: AsyncMock) -> None:
    response = client.get("/api/search/suggestions", params={"query": "re"})

    assert response.status_code == 200
    results = response.json()["results"]
    assert len(results) == 5
    for page in results.values():
        assert page["items"] == []
        assert page["page"] == 1
        assert page["per_page"] == 5
    mock_service.search.assert_not_awaited()


def test_suggestions_search_first_page(client: TestClient, mock_service: AsyncMock) -> None:
    response = client.get("/api/search/suggestions", params={"query": " react "})

    assert response.json()["query"] == "react"
    args, kwargs = mock_service.search.call_args
    assert args == ("react",)
    assert kwargs["per_page"] == 5
    assert kwargs["use_semantic"] is True
    assert kwargs["use_fulltext"] is True


def test_toolfinder_error_becomes_json(client: TestClient, mock_service: AsyncMock) -> None:
    mock_service.search.side_effect = ToolfinderError(ErrorCode.VALIDATION_ERROR, "bad input")

    response = client.get("/api/search", params={"query": "react"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["request_id"] == response.headers["x-request-id"]


def test_request_id_header(client: TestClient) -> None:
    response = client.get("/health")
    assert "x-request-id" in response.headers


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["x-request-id"] == "abc-123"


def test_404_for_unknown_routes(client: TestClient) -> None:
    response = client.get("/api/nonexistent")
    assert response.status_code == 404


def test_rate_limit() -> None:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_minute=2, clock=lambda: 125.0)

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        return {"pong": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    client = TestClient(app)
    assert client.get("/ping").headers["x-ratelimit-remaining"] == "1"
    assert client.get("/ping").headers["x-ratelimit-remaining"] == "0"

    limited = client.get("/ping")
    assert limited.status_code == 429
    assert limited.headers["retry-after"] == "55"
    body = limited.json()
    assert body["error"]["code"] == "SECURITY_RATE_LIMITED"
    assert body["error"]["details"] == {"retry_after": 55}
    assert client.get("/health").status_code == 200


def test_window_counter_limits_per_key() -> None:
    counter = WindowCounter(limit=2, clock=lambda: 10.0)

    assert counter.hit("a") == 1
    assert counter.hit("a") == 0
    assert counter.hit("a") is None
    assert counter.hit("b") == 1


def test_window_counter_drops_stale_windows() -> None:
    now = [0.0]
    counter = WindowCounter(limit=1, window_seconds=60, clock=lambda: now[0])

    for n in range(50):
        counter.hit(f"10.0.0.{n}")
    assert counter.hit("10.0.0.1") is None
    assert len(counter) == 50

    now[0] = 61.0
    assert counter.hit("10.0.0.99") == 0
    assert len(counter) == 1
    assert counter.hit("10.0.0.1") == 0

    now[0] = 3600.0
    counter.hit("10.0.0.1")
    assert len(counter) == 1


def test_search_filters_submissions_by_type() -> None:
    store = AsyncMock()
    store.keyword_tools.return_value = []
    store.fulltext_submissions.return_value = [(submission(3, "Hooks talk"), 1.0)]
    store.search_tags.return_value = ([], 0)
    store.search_users.return_value = ([], 0)
    store.search_lists.return_value = ([], 0)
    service = GlobalSearchService(build_adapters(store, None))

    app = create_app()
    app.dependency_overrides[get_search_service] = lambda: service
    app.dependency_overrides[get_enhancer] = lambda: AsyncMock()
    client = TestClient(app)

    response = client.get(
        "/api/search",
        params={"query": "hooks", "categories": "submissions", "submission_type": "video"},
    )

    assert response.status_code == 200
    assert response.json()["results"]["submissions"]["items"][0]["id"] == 3
    scope = store.fulltext_submissions.call_args.args[1]
    assert scope.submission_type == SubmissionType.VIDEO
    assert scope.status == SubmissionStatus.COMPLETED


def test_search_without_type_searches_all_submissions(
    client: TestClient, mock_service: AsyncMock
) -> None:
    client.get("/api/search", params={"query": "hooks"})
    assert mock_service.search.call_args.kwargs["submission_type"] is None


def test_search_rejects_unknown_submission_type(client: TestClient, mock_service: AsyncMock) -> None:
    response = client.get("/api/search", params={"query": "hooks", "submission_type": "hologram"})

    assert response.status_code == 422
    mock_service.search.assert_not_awaited()


def test_error_status_mapping() -> None:
    assert error_status(ErrorCode.VALIDATION_ERROR) == 400
    assert error_status(ErrorCode.LLM_RATE_LIMITED) == 429
    assert error_status(ErrorCode.STORAGE_CONNECTION_FAILED) == 503
    assert error_status(ErrorCode.ENHANCEMENT_INVALID_RESPONSE) == 500


def test_enhancer_dependency_is_a_result_enhancer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("toolfinder.interfaces.api.deps.get_llm", lambda: AsyncMock())
    get_enhancer.cache_clear()
    try:
        assert isinstance(get_enhancer(), ResultEnhancer)
    finally:
        get_enhancer.cache_clear()
