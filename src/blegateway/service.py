"""FastAPI service module for the BLE IoT gateway.

This module keeps only the web-facing wiring. Discovery, connection
management and value conversion live in ``gateway.py`` and the modules it
composes.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api.routes_nodes import router as nodes_router
from .config import GatewaySettings
from .gateway import GatewayService

# Global service instance - initialized lazily on first access
_service_instance: GatewayService | None = None


def get_service(settings: Optional[GatewaySettings] = None) -> GatewayService:
    """Get or create the singleton gateway service instance.

    Lazy initialization keeps the radio untouched until the application
    actually starts (uvicorn may import this module more than once).
    """
    global _service_instance
    if _service_instance is None:
        _service_instance = GatewayService(settings)
    return _service_instance


def create_app(
    service: Optional[GatewayService] = None,
    settings: Optional[GatewaySettings] = None,
) -> FastAPI:
    """Build the application.

    Args:
        service: Pre-built service (tests inject one with a fake adapter)
        settings: Configuration; defaults to the service's or the environment's
    """
    if settings is None:
        settings = service.settings if service is not None else GatewaySettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage gateway startup and shutdown via FastAPI lifespan."""
        gateway = service if service is not None else get_service(settings)
        # Make service instance available to routers
        app.state.service = gateway
        await gateway.start()
        try:
            yield
        finally:
            await gateway.stop()

    app = FastAPI(title="BLE IoT Gateway", lifespan=lifespan)
    app.include_router(nodes_router, prefix=settings.prefix)

    # Health check endpoint for container monitoring
    @app.get("/api/health")
    async def health_check():
        """Health check endpoint for Docker/monitoring."""
        try:
            gateway = app.state.service
            return {
                "status": "healthy",
                "service": "ble-iot-gateway",
                "prefix": settings.prefix,
                **gateway.health(),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "service": "ble-iot-gateway",
            }

    return app


app = create_app()


def main() -> None:  # pragma: no cover
    """Run the gateway under uvicorn.

    Configuration is read from ``BLE_GW_*`` environment variables; see
    ``blegateway.constants``.
    """
    import logging
    import sys

    import uvicorn

    from .logging_config import configure_logging, get_uvicorn_log_config

    configure_logging()
    logger = logging.getLogger(__name__)

    settings = GatewaySettings.from_env()
    logger.info(
        "ble-iot-gwy listening on %s:%d (prefix '%s', adapter '%s')",
        settings.host,
        settings.port,
        settings.prefix,
        settings.adapter,
    )

    try:
        uvicorn.run(
            create_app(settings=settings),
            host=settings.host,
            port=settings.port,
            log_config=get_uvicorn_log_config(),
            access_log=True,
        )
    except Exception as e:
        logger.exception(f"FATAL ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
