"""FastAPI application factory for the MySQL service API."""
from __future__ import annotations

import logging

from fastapi import FastAPI

from logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="MySQL Service API",
        description="Settings, backup, restore and credential management for the local MySQL server",
        version="0.1.0",
    )

    from api.routes import mysql_router, system_router

    app.include_router(system_router)
    app.include_router(mysql_router)

    logger.info("MySQL service API initialised")
    return app


def main():
    """Run the API server."""
    import uvicorn
    app = create_app()
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
