import logging
from collections.abc import Generator

import sentry_sdk
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import Request
from fastapi.responses import PlainTextResponse
from fastapi.responses import Response

from stats_card.github_api import GitHubClient
from stats_card.services.stats_service import build_stats_card
from stats_card.settings import Settings


logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_github_client(
    settings: Settings = Depends(get_settings),
) -> Generator[GitHubClient, None, None]:
    with GitHubClient.from_settings(settings) as client:
        yield client


@router.get("/")
async def root() -> dict[str, str]:
    """Return a basic service greeting."""

    return {"message": "GitHub stats card"}


@router.get("/health/live")
def health_live() -> dict[str, str]:
    """Return liveness probe response for health checks."""

    return {"status": "ok"}


@router.get("/api/stats")
def get_stats_card(
    username: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    client: GitHubClient = Depends(get_github_client),
) -> Response:
    """Render the contribution stats card for a GitHub user as SVG."""

    if username is None or not username.strip():
        return PlainTextResponse("Username parameter is required", status_code=400)
    username = username.strip()

    try:
        svg = build_stats_card(username, client)
    except Exception as exc:
        logger.exception("Error generating stats for %s", username)
        sentry_sdk.capture_exception(exc)
        return PlainTextResponse(f"Error: {exc}", status_code=500)

    return Response(
        content=svg,
        media_type="image/svg+xml",
        headers={"Cache-Control": f"public, max-age={settings.cache_max_age}"},
    )
