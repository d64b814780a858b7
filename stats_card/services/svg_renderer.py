import math
from collections.abc import Sequence
from datetime import UTC
from datetime import date
from datetime import datetime
from html import escape

from stats_card.models import ContributionDay
from stats_card.models import LanguageStat
from stats_card.models import RepoStats
from stats_card.models import Streaks


WIDTH = 800
HEIGHT = 760
GRAPH_WIDTH = 720
GRAPH_HEIGHT = 140
GRAPH_PADDING = 30
GRIDLINE_COUNT = 5
LANGUAGE_BAR_WIDTH = 720
LANGUAGE_BAR_X = 40
LANGUAGE_BAR_Y = 580
LANGUAGE_BAR_HEIGHT = 32

STYLE = """
    @media (prefers-color-scheme: dark) {
      .bg { fill: #0d1117; }
      .text { fill: #e6edf3; }
      .border { stroke: #30363d; }
      .grid-line { stroke: #21262d; }
      .axis-label { fill: #7d8590; }
      .section-bg { fill: #161b22; }
    }
    @media (prefers-color-scheme: light) {
      .bg { fill: #ffffff; }
      .text { fill: #24292f; }
      .border { stroke: #d0d7de; }
      .grid-line { stroke: #e6e9ed; }
      .axis-label { fill: #57606a; }
      .section-bg { fill: #f6f8fa; }
    }
    .stat-number { font-size: 52px; font-weight: bold; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; }
    .stat-label { font-size: 15px; font-weight: 600; letter-spacing: 0.3px; }
    .stat-detail { font-size: 12px; opacity: 0.75; }
    .lang-text { font-size: 15px; font-weight: 500; }
    .lang-percentage { font-size: 16px; font-weight: 600; opacity: 0.8; }
    .section-title { font-size: 18px; font-weight: 700; letter-spacing: -0.3px; }
    .accent-red { fill: #f85149; }
    .accent-blue { fill: #58a6ff; }
    .accent-green { fill: #3fb950; }
    .accent-purple { fill: #a371f7; }
    .graph-line { stroke: #3fb950; stroke-width: 3; fill: none; stroke-linecap: round; stroke-linejoin: round; }
    .graph-area { fill: url(#gradient); opacity: 0.3; }
    .grid-line { stroke-width: 1; opacity: 0.3; }
    .axis-label { font-size: 11px; font-weight: 500; }
    .text { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; }
"""

DEFS = """
  <defs>
    <linearGradient id="gradient" x1="0%" y1="0%" x2="0%" y2="100%">
      <stop offset="0%" style="stop-color:#3fb950;stop-opacity:0.8" />
      <stop offset="100%" style="stop-color:#3fb950;stop-opacity:0.1" />
    </linearGradient>
    <filter id="shadow">
      <feDropShadow dx="0" dy="1" stdDeviation="3" flood-opacity="0.15"/>
    </filter>
  </defs>
"""

STREAK_ICON = (
    "M -8 -22 Q -8 -27 -3 -27 L -3 -32 Q -3 -37 -8 -37 Q -13 -37 -13 -32 "
    "L -13 -27 Q -13 -27 -8 -22 M 8 -22 Q 8 -27 3 -27 L 3 -32 Q 3 -37 8 -37 "
    "Q 13 -37 13 -32 L 13 -27 Q 13 -27 8 -22 Z"
)


def num(value: float) -> str:
    """Format a coordinate: whole numbers bare, others at full precision."""

    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_count(value: int) -> str:
    return f"{value:,}"


def format_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return format_date(value.date())


def _panel(y: int, height: int) -> str:
    return (
        f'<rect x="10" y="{y}" width="780" height="{height}" class="section-bg" rx="10"/>\n'
        f'  <rect x="10" y="{y}" width="780" height="{height}" fill="none" '
        f'class="border" stroke-width="2" rx="10"/>'
    )


def build_activity_paths(
    activity_days: Sequence[ContributionDay],
) -> tuple[str, str, int]:
    """Return the smoothed line path, the filled area path and the y-axis max."""

    max_count = max((day.contribution_count for day in activity_days), default=0)
    max_count = max(max_count, 1)

    left = GRAPH_PADDING
    right = GRAPH_WIDTH - GRAPH_PADDING
    baseline = GRAPH_HEIGHT - GRAPH_PADDING
    usable_height = GRAPH_HEIGHT - 2 * GRAPH_PADDING

    if not activity_days:
        line_path = f"M {num(left)},{num(baseline)} L {num(right)},{num(baseline)}"
    else:
        span = max(len(activity_days) - 1, 1)
        points = [
            (
                left + index / span * (right - left),
                baseline - day.contribution_count / max_count * usable_height,
            )
            for index, day in enumerate(activity_days)
        ]

        segments = [f"M {num(points[0][0])},{num(points[0][1])}"]
        for (prev_x, prev_y), (curr_x, curr_y) in zip(points, points[1:]):
            segments.append(
                f"Q {num(prev_x)},{num(prev_y)} "
                f"{num((prev_x + curr_x) / 2)},{num((prev_y + curr_y) / 2)}"
            )
        last_x, last_y = points[-1]
        if len(points) > 1:
            segments.append(
                f"Q {num(last_x)},{num(last_y)} {num(last_x)},{num(last_y)}"
            )
        line_path = " ".join(segments)

    area_path = (
        f"{line_path} L {num(right)},{num(baseline)} L {num(left)},{num(baseline)} Z"
    )
    return line_path, area_path, max_count


def build_gridlines(max_count: int) -> str:
    lines = []
    steps = GRIDLINE_COUNT - 1
    for index in range(GRIDLINE_COUNT):
        y = GRAPH_PADDING + index * (GRAPH_HEIGHT - 2 * GRAPH_PADDING) / steps
        value = round_half_up(max_count * (1 - index / steps))
        lines.append(
            f'<line x1="{GRAPH_PADDING}" y1="{num(y)}" x2="{GRAPH_WIDTH - GRAPH_PADDING}" '
            f'y2="{num(y)}" class="grid-line"/>\n'
            f'      <text x="{GRAPH_PADDING - 15}" y="{num(y + 4)}" class="axis-label" '
            f'text-anchor="end">{value}</text>'
        )
    return "\n    ".join(lines)


def build_language_bar(languages: Sequence[LanguageStat]) -> str:
    segments = []
    offset = 0.0
    for index, language in enumerate(languages):
        width = float(language.percentage) / 100 * LANGUAGE_BAR_WIDTH
        rx = 6 if index in (0, len(languages) - 1) else 0
        segments.append(
            f'<rect x="{num(offset + LANGUAGE_BAR_X)}" y="{LANGUAGE_BAR_Y}" '
            f'width="{num(width)}" height="{LANGUAGE_BAR_HEIGHT}" '
            f'fill="{escape(language.color)}" rx="{rx}"/>'
        )
        offset += width
    return "".join(segments)


def build_language_legend(languages: Sequence[LanguageStat]) -> str:
    items = []
    for index, language in enumerate(languages):
        row, column = divmod(index, 2)
        x = 100 if column == 0 else 450
        y = 645 + row * 42
        items.append(
            f'<circle cx="{x - 45}" cy="{y - 4}" r="7" fill="{escape(language.color)}"/>\n'
            f'    <text x="{x}" y="{y}" class="text lang-text">{escape(language.name)}</text>\n'
            f'    <text x="{x + 230}" y="{y}" class="text lang-percentage" '
            f'text-anchor="end">{escape(language.percentage)}%</text>'
        )
    return "\n    ".join(items)


def render_stats_svg(
    total_contributions: int,
    streaks: Streaks,
    activity_days: Sequence[ContributionDay],
    languages: Sequence[LanguageStat],
    created_at: datetime,
    repo_stats: RepoStats,
) -> str:
    """Render the stats card as a standalone SVG document.

    Pure function of its inputs: the same data always renders the same
    document. Colors follow the viewer's `prefers-color-scheme`.
    """

    line_path, area_path, max_count = build_activity_paths(activity_days)
    baseline = GRAPH_HEIGHT - GRAPH_PADDING
    right = GRAPH_WIDTH - GRAPH_PADDING

    account_created = format_timestamp(created_at)
    current_start = format_date(streaks.current_start)
    longest_start = format_date(streaks.longest_start)
    longest_end = format_date(streaks.longest_end)

    return f"""<svg width="{WIDTH}" height="{HEIGHT}" xmlns="http://www.w3.org/2000/svg">
  <style>{STYLE}  </style>
{DEFS}
  <rect width="{WIDTH}" height="{HEIGHT}" class="bg" rx="12"/>

  {_panel(10, 160)}

  <g transform="translate(140, 90)">
    <circle cx="0" cy="0" r="50" class="accent-red" opacity="0.12"/>
    <text x="0" y="8" class="text stat-number accent-red" text-anchor="middle">{format_count(total_contributions)}</text>
    <text x="0" y="31" class="accent-red stat-label" text-anchor="middle">Total Contributions</text>
    <text x="0" y="50" class="text stat-detail" text-anchor="middle">{account_created} - Present</text>
  </g>

  <g transform="translate(400, 90)">
    <circle cx="0" cy="0" r="50" class="accent-blue" opacity="0.12"/>
    <path d="{STREAK_ICON}" class="accent-blue" opacity="0.7"/>
    <text x="0" y="8" class="text stat-number accent-blue" text-anchor="middle">{streaks.current}</text>
    <text x="0" y="31" class="accent-blue stat-label" text-anchor="middle">Current Streak</text>
    <text x="0" y="50" class="text stat-detail" text-anchor="middle">{current_start} - Present</text>
  </g>

  <g transform="translate(660, 90)">
    <circle cx="0" cy="0" r="50" class="accent-purple" opacity="0.12"/>
    <text x="0" y="8" class="text stat-number accent-purple" text-anchor="middle">{streaks.longest}</text>
    <text x="0" y="31" class="accent-purple stat-label" text-anchor="middle">Longest Streak</text>
    <text x="0" y="50" class="text stat-detail" text-anchor="middle">{longest_start} - {longest_end}</text>
  </g>

  <line x1="270" y1="30" x2="270" y2="150" class="border" stroke-width="2" opacity="0.3"/>
  <line x1="530" y1="30" x2="530" y2="150" class="border" stroke-width="2" opacity="0.3"/>

  {_panel(190, 190)}

  <text x="30" y="218" class="text section-title">Contribution Activity (Last 90 Days)</text>

  <g transform="translate(30, 240)">
    {build_gridlines(max_count)}

    <path d="{area_path}" class="graph-area"/>
    <path d="{line_path}" class="graph-line"/>

    <line x1="{GRAPH_PADDING}" y1="{baseline}" x2="{right}" y2="{baseline}" class="border" stroke-width="2"/>
    <line x1="{GRAPH_PADDING}" y1="{GRAPH_PADDING}" x2="{GRAPH_PADDING}" y2="{baseline}" class="border" stroke-width="2"/>

    <text x="{GRAPH_PADDING + 10}" y="{GRAPH_HEIGHT - 8}" class="axis-label">90 days ago</text>
    <text x="{right - 10}" y="{GRAPH_HEIGHT - 8}" class="axis-label" text-anchor="end">Today</text>
  </g>

  {_panel(400, 90)}

  <g transform="translate(0, 455)">
    <text x="200" y="0" class="text stat-number accent-blue" text-anchor="middle">{format_count(repo_stats.total_stars)}</text>
    <text x="200" y="22" class="accent-blue stat-label" text-anchor="middle">Total Stars</text>

    <text x="400" y="0" class="text stat-number accent-purple" text-anchor="middle">{format_count(repo_stats.total_forks)}</text>
    <text x="400" y="22" class="accent-purple stat-label" text-anchor="middle">Total Forks</text>

    <text x="600" y="0" class="text stat-number accent-green" text-anchor="middle">{len(languages)}</text>
    <text x="600" y="22" class="accent-green stat-label" text-anchor="middle">Languages Used</text>
  </g>

  <line x1="310" y1="415" x2="310" y2="475" class="border" stroke-width="2" opacity="0.3"/>
  <line x1="490" y1="415" x2="490" y2="475" class="border" stroke-width="2" opacity="0.3"/>

  {_panel(510, 240)}

  <text x="30" y="538" class="accent-green section-title">Most Used Languages</text>

  <g>
    {build_language_bar(languages)}
  </g>

  <g>
    {build_language_legend(languages)}
  </g>
</svg>"""
