from collections.abc import Sequence

from stats_card.models import LanguageStat
from stats_card.models import RepoStats
from stats_card.models import Repository


DEFAULT_LANGUAGE_COLOR = "#858585"
MAX_LANGUAGES = 5


def calculate_language_stats(
    repositories: Sequence[Repository], limit: int = MAX_LANGUAGES
) -> list[LanguageStat]:
    """Aggregate language byte sizes across repositories.

    Returns the `limit` largest languages with their share of the total
    size, formatted to two decimals. An empty list is returned when there is
    no language data at all.
    """

    sizes: dict[str, int] = {}
    colors: dict[str, str] = {}

    for repository in repositories:
        for edge in repository.languages.edges:
            name = edge.node.name
            sizes[name] = sizes.get(name, 0) + edge.size
            if edge.node.color and name not in colors:
                colors[name] = edge.node.color

    total_size = sum(sizes.values())
    if total_size == 0:
        return []

    stats = [
        LanguageStat(
            name=name,
            color=colors.get(name, DEFAULT_LANGUAGE_COLOR),
            percentage=f"{size / total_size * 100:.2f}",
            size=size,
        )
        for name, size in sizes.items()
    ]
    stats.sort(key=lambda stat: stat.size, reverse=True)
    return stats[:limit]


def calculate_repo_stats(repositories: Sequence[Repository]) -> RepoStats:
    """Sum stars and forks across repositories."""

    return RepoStats(
        total_stars=sum(repository.stargazer_count for repository in repositories),
        total_forks=sum(repository.fork_count for repository in repositories),
    )
