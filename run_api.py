#!/usr/bin/env python
"""
Portfolio API Server Runner.

Usage:
    python run_api.py

Settings (DATABASE_URL, API_HOST, API_PORT, ...) come from the
environment or a local .env file.
"""

import logging
import sys

import uvicorn

from portfolio_api.config import ApiSettings

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

logger = logging.getLogger(__name__)


def main():
    """Run the portfolio API server."""
    settings = ApiSettings.from_env()
    reload = settings.environment == "development"

    logger.info(f"Starting Portfolio API on {settings.api_host}:{settings.api_port}")

    try:
        uvicorn.run(
            "portfolio_api.main:create_app",
            factory=True,
            host=settings.api_host,
            port=settings.api_port,
            reload=reload,
            log_level="info",
            access_log=True,
        )
    except Exception as e:
        logger.error(f"Failed to start portfolio API: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
