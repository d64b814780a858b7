from datetime import date
from datetime import datetime

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class GitHubModel(BaseModel):
    """Base for models parsed from GitHub payloads (camelCase aliases)."""

    model_config = ConfigDict(populate_by_name=True)


class ContributionDay(GitHubModel):
    """Single calendar day with its contribution count."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    date: date
    contribution_count: int = Field(alias="contributionCount", ge=0)


class ContributionWeek(GitHubModel):
    """Week bucket; a new week starts on each UTC Sunday."""

    contribution_days: list[ContributionDay] = Field(
        default_factory=list, alias="contributionDays"
    )


class ContributionCalendar(GitHubModel):
    """Per-day contribution history grouped into weeks."""

    total_contributions: int = Field(default=0, alias="totalContributions", ge=0)
    weeks: list[ContributionWeek] = Field(default_factory=list)

    def days(self) -> list[ContributionDay]:
        return [day for week in self.weeks for day in week.contribution_days]


class LanguageNode(GitHubModel):
    name: str
    color: str | None = None


class LanguageEdge(GitHubModel):
    size: int = Field(ge=0)
    node: LanguageNode


class LanguageConnection(GitHubModel):
    edges: list[LanguageEdge] = Field(default_factory=list)


class Repository(GitHubModel):
    """Repository node as returned by the GraphQL `repositories` connection."""

    stargazer_count: int = Field(default=0, alias="stargazerCount", ge=0)
    fork_count: int = Field(default=0, alias="forkCount", ge=0)
    languages: LanguageConnection = Field(default_factory=LanguageConnection)


class Organization(GitHubModel):
    id: str
    login: str


class GitHubData(BaseModel):
    """Everything fetched upstream for a single stats card."""

    calendar: ContributionCalendar
    repositories: list[Repository]
    created_at: datetime


class Streaks(BaseModel):
    current: int
    current_start: date
    longest: int
    longest_start: date
    longest_end: date


class LanguageStat(BaseModel):
    name: str
    color: str
    percentage: str
    size: int


class RepoStats(BaseModel):
    total_stars: int = 0
    total_forks: int = 0
