"""
Main entrypoint: run the lovebrain FastAPI server under uvicorn.

The population store is opened by the app lifespan; when DATABASE_URL /
DATABASE_PATH are unset or the database is unreachable the server still starts
and serves estimated ("mock") rankings.

Env: API_HOST, API_PORT, DATABASE_URL or DATABASE_PATH, TOTAL_SIMULATIONS, ACCESS_CODE, LOG_LEVEL.

Direct: uvicorn lovebrain.api_server.app:app --host 0.0.0.0 --port 3000
"""

import os

# Configure structured JSON logging before other imports that may log
from lovebrain.lovebrain_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Run the API server in the main thread; uvicorn handles SIGINT/SIGTERM shutdown."""
    from lovebrain.config import get_settings
    from lovebrain.api_server.app import app
    import uvicorn

    settings = get_settings()
    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        database_configured=settings.database_url is not None,
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
