import logging
from datetime import date

from stats_card.github_api import GitHubClient
from stats_card.services.calendar_service import calculate_streaks
from stats_card.services.calendar_service import last_n_days
from stats_card.services.repo_service import calculate_language_stats
from stats_card.services.repo_service import calculate_repo_stats
from stats_card.services.svg_renderer import render_stats_svg


logger = logging.getLogger(__name__)

ACTIVITY_WINDOW_DAYS = 90


def build_stats_card(
    username: str, client: GitHubClient, today: date | None = None
) -> str:
    """Fetch GitHub data for `username` and render the stats card SVG."""

    data = client.fetch_github_data(username)
    weeks = data.calendar.weeks

    streaks = calculate_streaks(weeks, today=today)
    activity_days = last_n_days(weeks, ACTIVITY_WINDOW_DAYS)
    languages = calculate_language_stats(data.repositories)
    repo_stats = calculate_repo_stats(data.repositories)

    logger.info(
        "Stats for %s: contributions=%d weeks=%d repositories=%d "
        "current_streak=%d longest_streak=%d",
        username,
        data.calendar.total_contributions,
        len(weeks),
        len(data.repositories),
        streaks.current,
        streaks.longest,
    )

    return render_stats_svg(
        data.calendar.total_contributions,
        streaks,
        activity_days,
        languages,
        data.created_at,
        repo_stats,
    )
