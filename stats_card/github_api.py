import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from typing import Generic
from typing import TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from stats_card.models import ContributionCalendar
from stats_card.models import GitHubData
from stats_card.models import Organization
from stats_card.models import Repository
from stats_card.services.calendar_service import merge_contributions
from stats_card.settings import Settings


logger = logging.getLogger(__name__)

USER_AGENT = "github-stats-card"

CALENDAR_FIELDS = """
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            contributionCount
            date
          }
        }
      }
"""

REPOSITORIES_FIELDS = """
    repositories(
      first: 100
      ownerAffiliations: [OWNER, ORGANIZATION_MEMBER, COLLABORATOR]
      orderBy: {field: UPDATED_AT, direction: DESC}
    ) {
      nodes {
        stargazerCount
        forkCount
        languages(first: 10, orderBy: {field: SIZE, direction: DESC}) {
          edges {
            size
            node {
              name
              color
            }
          }
        }
      }
    }
"""

ORGANIZATIONS_QUERY = """
query($username: String!) {
  user(login: $username) {
    organizations(first: 100) {
      nodes {
        id
        login
      }
    }
  }
}
"""


class GitHubError(Exception):
    """Base class for failures talking to GitHub."""


class GitHubUserNotFoundError(GitHubError):
    """Raised when the requested GitHub user does not exist."""


class GitHubAPIError(GitHubError):
    """Raised on transport failures, non-success statuses or bad payloads."""


class GitHubGraphQLError(GitHubError):
    """Raised when GitHub GraphQL answers with an `errors` payload."""


T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Tagged outcome of a fetch attempt that must not raise."""

    value: T | None = None
    error: GitHubError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: GitHubError) -> "FetchResult[T]":
        return cls(error=error)


def parse_github_datetime(raw_value: str) -> datetime:
    return datetime.fromisoformat(raw_value.replace("Z", "+00:00"))


class ContributionsQueryBuilder:
    """Compose the combined contributions query from named sub-queries.

    The personal `contributionsCollection` is always present. Each added
    organization becomes an aliased `orgN` collection whose ID is passed as a
    GraphQL variable, so any number of organizations (including none) yields a
    valid query.
    """

    def __init__(self) -> None:
        self._variable_types: dict[str, str] = {"username": "String!"}
        self._sub_queries: list[str] = [
            f"    contributionsCollection {{{CALENDAR_FIELDS}    }}"
        ]
        self._organizations: dict[str, Organization] = {}

    def add_organization(self, organization: Organization) -> str:
        alias = f"org{len(self._organizations)}"
        self._variable_types[alias] = "ID!"
        self._sub_queries.append(
            f"    {alias}: contributionsCollection(organizationID: ${alias}) "
            f"{{{CALENDAR_FIELDS}    }}"
        )
        self._organizations[alias] = organization
        return alias

    @property
    def organizations(self) -> dict[str, Organization]:
        return dict(self._organizations)

    def build(self, username: str) -> tuple[str, dict[str, str]]:
        declarations = ", ".join(
            f"${name}: {type_name}"
            for name, type_name in self._variable_types.items()
        )
        body = "\n".join([*self._sub_queries, REPOSITORIES_FIELDS])
        query = f"query({declarations}) {{\n  user(login: $username) {{\n{body}\n  }}\n}}"

        variables = {"username": username}
        for alias, organization in self._organizations.items():
            variables[alias] = organization.id
        return query, variables


class GitHubClient:
    """GitHub REST and GraphQL client used to build a stats card."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        graphql_url: str = "https://api.github.com/graphql",
        timeout: float = 20.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.token = token or None
        self.api_url = api_url.rstrip("/")
        self.graphql_url = graphql_url
        self.timeout = timeout
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.Client | None = None
    ) -> "GitHubClient":
        return cls(
            token=settings.github_token,
            api_url=settings.github_api_url,
            graphql_url=settings.github_graphql_url,
            timeout=settings.request_timeout,
            http_client=http_client,
        )

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _json_mapping(response: httpx.Response, label: str) -> Mapping[str, Any]:
        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise GitHubAPIError(f"{label} response is not valid JSON") from exc
        if not isinstance(payload, Mapping):
            raise GitHubAPIError(f"{label} response is invalid")
        return payload

    def fetch_user(self, username: str) -> datetime:
        """Fetch the account creation timestamp from the REST user endpoint."""

        try:
            response = self._http.get(
                f"{self.api_url}/users/{quote(username, safe='')}",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"User API request failed: {exc}") from exc

        if response.status_code == 404:
            raise GitHubUserNotFoundError(f"User {username} not found")
        if not response.is_success:
            raise GitHubAPIError(f"User API returned {response.status_code}")

        payload = self._json_mapping(response, "User API")
        raw_created_at = payload.get("created_at")
        if not isinstance(raw_created_at, str) or not raw_created_at:
            raise GitHubUserNotFoundError(f"User {username} not found")

        try:
            return parse_github_datetime(raw_created_at)
        except ValueError as exc:
            raise GitHubAPIError(
                f"User API returned invalid created_at: {raw_created_at}"
            ) from exc

    def _graphql_user(
        self, query: str, variables: Mapping[str, str], label: str
    ) -> Mapping[str, Any]:
        """Run a GraphQL query and return its `user` node."""

        headers = {**self._headers(), "Content-Type": "application/json"}
        try:
            response = self._http.post(
                self.graphql_url,
                json={"query": query, "variables": dict(variables)},
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"{label} GraphQL request failed: {exc}") from exc

        if not response.is_success:
            raise GitHubAPIError(f"{label} GraphQL API error: {response.status_code}")

        payload = self._json_mapping(response, f"{label} GraphQL")

        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else errors
            message = first.get("message") if isinstance(first, Mapping) else None
            raise GitHubGraphQLError(f"GraphQL error: {message or errors}")

        data = payload.get("data")
        if not isinstance(data, Mapping):
            raise GitHubAPIError(f"{label} GraphQL data is missing")

        user = data.get("user")
        if not isinstance(user, Mapping):
            raise GitHubUserNotFoundError(
                f"User {variables.get('username')} not found"
            )
        return user

    def fetch_organizations(self, username: str) -> list[Organization]:
        user = self._graphql_user(
            ORGANIZATIONS_QUERY, {"username": username}, "Orgs"
        )

        connection = user.get("organizations")
        nodes = connection.get("nodes") if isinstance(connection, Mapping) else None
        if not isinstance(nodes, list):
            return []

        organizations: list[Organization] = []
        for node in nodes:
            if not isinstance(node, Mapping):
                continue
            try:
                organizations.append(Organization.model_validate(node))
            except ValidationError:
                continue
        return organizations

    @staticmethod
    def _parse_repositories(user: Mapping[str, Any]) -> list[Repository]:
        connection = user.get("repositories")
        nodes = connection.get("nodes") if isinstance(connection, Mapping) else None
        if not isinstance(nodes, list):
            raise GitHubAPIError("GitHub repositories are missing")

        try:
            return [
                Repository.model_validate(node)
                for node in nodes
                if isinstance(node, Mapping)
            ]
        except ValidationError as exc:
            raise GitHubAPIError("GitHub repositories are invalid") from exc

    def try_fetch_with_org_contributions(
        self, username: str, created_at: datetime
    ) -> FetchResult[GitHubData]:
        """Fetch personal plus organization contributions, merged by day.

        Never raises a `GitHubError`; failures are returned as a failed
        `FetchResult` so the caller can fall back to the user-only query.
        """

        try:
            organizations = self.fetch_organizations(username)
            logger.info(
                "Found %d organizations for %s", len(organizations), username
            )

            builder = ContributionsQueryBuilder()
            for organization in organizations:
                builder.add_organization(organization)
            query, variables = builder.build(username)

            user = self._graphql_user(query, variables, "Main")

            collections = [user.get("contributionsCollection")]
            for alias, organization in builder.organizations.items():
                collection = user.get(alias)
                if isinstance(collection, Mapping) and isinstance(
                    collection.get("contributionCalendar"), Mapping
                ):
                    collections.append(collection)
                    logger.debug(
                        "Added contributions from org: %s", organization.login
                    )

            calendar = merge_contributions(collections)
            repositories = self._parse_repositories(user)
        except GitHubError as exc:
            return FetchResult.failure(exc)

        logger.info(
            "Total contributions for %s after merge: %d",
            username,
            calendar.total_contributions,
        )
        return FetchResult.success(
            GitHubData(
                calendar=calendar,
                repositories=repositories,
                created_at=created_at,
            )
        )

    def fetch_user_only_contributions(
        self, username: str, created_at: datetime
    ) -> GitHubData:
        """Fetch the personal calendar and repositories without any merge."""

        query, variables = ContributionsQueryBuilder().build(username)
        user = self._graphql_user(query, variables, "User")

        collection = user.get("contributionsCollection")
        raw_calendar = (
            collection.get("contributionCalendar")
            if isinstance(collection, Mapping)
            else None
        )
        if not isinstance(raw_calendar, Mapping):
            raise GitHubAPIError("GitHub contributionCalendar is missing")

        try:
            calendar = ContributionCalendar.model_validate(raw_calendar)
        except ValidationError as exc:
            raise GitHubAPIError("GitHub contributionCalendar is invalid") from exc

        logger.info(
            "User-only contributions for %s: %d",
            username,
            calendar.total_contributions,
        )
        return GitHubData(
            calendar=calendar,
            repositories=self._parse_repositories(user),
            created_at=created_at,
        )

    def fetch_github_data(self, username: str) -> GitHubData:
        """Fetch everything needed for a stats card.

        The organization-inclusive query is tried first; on any failure the
        user-only query is attempted once and its failure is final.

        Raises:
            GitHubUserNotFoundError: If the user does not exist.
            GitHubError: If both the org-inclusive and user-only paths fail.
        """

        created_at = self.fetch_user(username)

        result = self.try_fetch_with_org_contributions(username, created_at)
        if result.ok and result.value is not None:
            return result.value

        logger.warning(
            "Failed to fetch org contributions for %s (%s), "
            "falling back to user-only contributions",
            username,
            result.error,
        )
        return self.fetch_user_only_contributions(username, created_at)
