"""Main application entry point."""

import argparse
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from society_portal.api import billing_router, residents_router
from society_portal.config import Settings, get_settings
from society_portal.models import Base
from society_portal.services import async_engine
from society_portal.services.gateway import PaymentGateway, RazorpayGateway
from society_portal.services.logging import setup_server_logging

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use (default: get_settings())
        gateway: Payment gateway client; built from settings at startup when omitted
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready")

        if app.state.payment_gateway is None:
            try:
                app.state.payment_gateway = RazorpayGateway.from_settings(settings)
                logger.info("Payment gateway initialized")
            except ValueError as e:
                # Portal still serves bills and membership; checkout answers 503
                logger.error(f"Payment gateway not configured: {e}")

        yield

        await async_engine.dispose()
        logger.info("Database connections closed")

    app = FastAPI(
        title=settings.api_title,
        description="Residential society maintenance billing and payments",
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.payment_gateway = gateway

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age_seconds,
        https_only=settings.session_https_only,
        same_site="lax",
    )

    app.include_router(residents_router)
    app.include_router(billing_router)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint for monitoring."""
        return {"status": "ok"}

    return app


app = create_app()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Society Portal")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    args = parser.parse_args()

    settings = get_settings()
    setup_server_logging(settings.log_file, settings.log_level)

    logger.info(f"Starting Uvicorn server on {args.host}:{args.port}...")
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
