from datetime import UTC
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from stats_card.api.routes.stats import get_github_client
from stats_card.github_api import GitHubUserNotFoundError
from stats_card.main import create_app
from stats_card.models import GitHubData
from stats_card.services.calendar_service import merge_contributions
from stats_card.settings import Settings


class FakeGitHubClient:
    def __init__(self, data: GitHubData | None = None, error: Exception | None = None):
        self.data = data
        self.error = error
        self.calls: list[str] = []

    def fetch_github_data(self, username: str) -> GitHubData:
        self.calls.append(username)
        if self.error is not None:
            raise self.error
        return self.data


def sample_data() -> GitHubData:
    calendar = merge_contributions(
        [
            {
                "contributionCalendar": {
                    "weeks": [
                        {
                            "contributionDays": [
                                {"date": "2024-03-01", "contributionCount": 2},
                                {"date": "2024-03-02", "contributionCount": 3},
                            ]
                        }
                    ]
                }
            }
        ]
    )
    return GitHubData(
        calendar=calendar,
        repositories=[],
        created_at=datetime(2011, 1, 25, tzinfo=UTC),
    )


@pytest.fixture
def fake_client() -> FakeGitHubClient:
    return FakeGitHubClient(data=sample_data())


@pytest.fixture
def client(fake_client: FakeGitHubClient) -> TestClient:
    app = create_app(Settings(sentry_dsn=None))
    app.dependency_overrides[get_github_client] = lambda: fake_client

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_read_root_returns_greeting(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "GitHub stats card"}


def test_health_live_returns_ok(client: TestClient) -> None:
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_stats_returns_svg_with_cache_header(
    client: TestClient, fake_client: FakeGitHubClient
) -> None:
    response = client.get("/api/stats?username=octocat")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("image/svg+xml")
    assert response.headers["cache-control"] == "public, max-age=14400"
    assert response.text.startswith("<svg")
    assert "Jan 25, 2011 - Present" in response.text
    assert fake_client.calls == ["octocat"]


def test_stats_requires_username_without_upstream_call(
    client: TestClient, fake_client: FakeGitHubClient
) -> None:
    missing = client.get("/api/stats")
    blank = client.get("/api/stats?username=%20")

    for response in (missing, blank):
        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Username parameter is required"
    assert fake_client.calls == []


def test_stats_repeated_requests_are_never_throttled(
    client: TestClient, fake_client: FakeGitHubClient
) -> None:
    headers = {"X-Forwarded-For": "203.0.113.10"}

    missing_codes = [
        client.get("/api/stats", headers=headers).status_code for _ in range(35)
    ]
    success_codes = [
        client.get("/api/stats?username=octocat", headers=headers).status_code
        for _ in range(5)
    ]

    assert set(missing_codes) == {400}
    assert set(success_codes) == {200}
    assert len(fake_client.calls) == 5


def test_stats_returns_500_with_error_message(
    client: TestClient, fake_client: FakeGitHubClient
) -> None:
    fake_client.error = GitHubUserNotFoundError("User ghost not found")

    response = client.get("/api/stats?username=ghost")

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "Error: User ghost not found"


def test_stats_cache_max_age_follows_settings(fake_client: FakeGitHubClient) -> None:
    app = create_app(Settings(cache_max_age=60))
    app.dependency_overrides[get_github_client] = lambda: fake_client

    response = TestClient(app).get("/api/stats?username=octocat")

    assert response.headers["cache-control"] == "public, max-age=60"


def test_settings_read_github_token_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_example")

    settings = Settings()

    assert settings.github_token == "ghp_example"
    assert settings.github_graphql_url == "https://api.github.com/graphql"
