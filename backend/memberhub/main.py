"""FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from memberhub.api.routes import account, admin, billing, communities, health, provisioning, webhooks
from memberhub.core.config import Settings, settings
from memberhub.core.container import AppServices, build_services
from memberhub.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    app_settings: Settings = settings,
    services_factory: Callable[[Settings], AppServices] = build_services,
) -> FastAPI:
    setup_logging(app_settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = services_factory(app_settings)
        logger.info(f"{app_settings.PROJECT_NAME} started")
        try:
            yield
        finally:
            app.state.services.close()
            logger.info(f"{app_settings.PROJECT_NAME} stopped")

    app = FastAPI(
        title="memberhub API",
        description="Community subscriptions backed by Stripe, Clerk and Circle",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    # The front end calls us server-side; browsers only hit the webhooks
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["health"])
    app.include_router(communities.router)
    app.include_router(billing.router)
    app.include_router(provisioning.router)
    app.include_router(account.router)
    app.include_router(admin.router)
    app.include_router(webhooks.router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {"message": "memberhub API", "version": "1.0.0"}

    return app


app = create_app()
