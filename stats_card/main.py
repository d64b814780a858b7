from fastapi import FastAPI

from stats_card.api.routes.stats import router
from stats_card.core.observability import configure_logging
from stats_card.core.observability import init_sentry
from stats_card.settings import Settings


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application with logging and Sentry configured."""

    app_settings = settings or Settings()
    configure_logging(app_settings)
    init_sentry(app_settings)

    app = FastAPI(title="GitHub Stats Card")
    app.state.settings = app_settings
    app.include_router(router)
    return app


app = create_app()
