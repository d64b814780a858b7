from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from datetime import UTC
from datetime import date
from datetime import datetime
from typing import Any

from stats_card.models import ContributionCalendar
from stats_card.models import ContributionDay
from stats_card.models import ContributionWeek
from stats_card.models import Streaks


def utc_today() -> date:
    """Return today's calendar date in UTC, matching GitHub's calendar."""

    return datetime.now(UTC).date()


def sunday_based_weekday(day: date) -> int:
    """Map a date to a weekday index where Sunday is 0."""

    return (day.weekday() + 1) % 7


def _collect_daily_counts(
    collections: Iterable[Mapping[str, Any] | None],
) -> dict[date, int]:
    counts: dict[date, int] = {}

    for collection in collections:
        if not isinstance(collection, Mapping):
            continue
        calendar = collection.get("contributionCalendar")
        if not isinstance(calendar, Mapping):
            continue
        weeks = calendar.get("weeks")
        if not isinstance(weeks, list):
            continue

        for week in weeks:
            if not isinstance(week, Mapping):
                continue
            contribution_days = week.get("contributionDays")
            if not isinstance(contribution_days, list):
                continue
            for item in contribution_days:
                if not isinstance(item, Mapping):
                    continue
                raw_date = item.get("date")
                raw_count = item.get("contributionCount")
                if not isinstance(raw_date, str) or not isinstance(raw_count, int):
                    continue
                if isinstance(raw_count, bool) or raw_count < 0:
                    continue
                try:
                    parsed_day = date.fromisoformat(raw_date)
                except ValueError:
                    continue
                counts[parsed_day] = counts.get(parsed_day, 0) + raw_count

    return counts


def merge_contributions(
    collections: Iterable[Mapping[str, Any] | None],
) -> ContributionCalendar:
    """Merge contribution collections into one deduplicated calendar.

    Each collection is a raw GraphQL `contributionsCollection` mapping. Counts
    for a date present in several collections are summed. Collections, weeks
    and days that are missing or malformed are skipped.
    """

    counts = _collect_daily_counts(collections)

    weeks: list[ContributionWeek] = []
    current_week: list[ContributionDay] = []
    total = 0

    for day in sorted(counts):
        if sunday_based_weekday(day) == 0 and current_week:
            weeks.append(ContributionWeek(contribution_days=current_week))
            current_week = []

        count = counts[day]
        current_week.append(ContributionDay(date=day, contribution_count=count))
        total += count

    if current_week:
        weeks.append(ContributionWeek(contribution_days=current_week))

    return ContributionCalendar(total_contributions=total, weeks=weeks)


def flatten_days(weeks: Sequence[ContributionWeek]) -> list[ContributionDay]:
    return [day for week in weeks for day in week.contribution_days]


def last_n_days(
    weeks: Sequence[ContributionWeek], n: int = 90
) -> list[ContributionDay]:
    """Return the most recent `n` days, oldest first."""

    if n <= 0:
        return []
    return flatten_days(weeks)[-n:]


def calculate_streaks(
    weeks: Sequence[ContributionWeek], today: date | None = None
) -> Streaks:
    """Compute current and longest contribution streaks.

    The current streak is counted backwards from the newest day. A zero count
    on `today` does not break it, so a streak earned through yesterday is kept
    until the day is over. Only a strictly longer run replaces the longest
    streak, so ties keep the earliest run.
    """

    if today is None:
        today = utc_today()

    all_days = flatten_days(weeks)

    longest = 0
    longest_start: date | None = None
    longest_end: date | None = None
    run_length = 0
    run_start: date | None = None

    for day in all_days:
        if day.contribution_count > 0:
            if run_length == 0:
                run_start = day.date
            run_length += 1
            if run_length > longest:
                longest = run_length
                longest_start = run_start
                longest_end = day.date
        else:
            run_length = 0
            run_start = None

    current = 0
    current_start: date | None = None

    for day in reversed(all_days):
        if day.date > today:
            continue
        if day.contribution_count > 0:
            current += 1
            current_start = day.date
        elif day.date != today:
            break

    return Streaks(
        current=current,
        current_start=current_start or today,
        longest=longest,
        longest_start=longest_start or today,
        longest_end=longest_end or today,
    )
