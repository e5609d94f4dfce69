"""
Run the service.

    GATEWAY_WEBHOOK_SECRET=... GATEWAY_API_KEY=... python -m wifiticket
"""

import asyncio
import sys

import uvicorn

from wifiticket.api import create_app
from wifiticket.config import ConfigError, Settings
from wifiticket.db import create_database
from wifiticket.gateway import HttpGateway
from wifiticket.log import configure_logging, get_logger
from wifiticket.service import sqlalchemy_service


async def serve(settings: Settings) -> None:
    logger = get_logger("main")
    session_factory, engine = await create_database(settings.database_url)
    gateway = HttpGateway.from_settings(settings)
    app = create_app(sqlalchemy_service(settings, session_factory, gateway))

    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None)
    )
    logger.info(
        "service_starting",
        host=settings.host,
        port=settings.port,
        gateway=settings.gateway_name,
    )
    try:
        await server.serve()
    finally:
        await gateway.aclose()
        await engine.dispose()
        logger.info("service_stopped")


def main() -> None:
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        configure_logging()
        get_logger("main").error("config_invalid", reason=str(e))
        sys.exit(1)

    configure_logging(settings.log_level, settings.log_json)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
