# -*- coding: utf-8 -*-
"""
FuelEU Maritime API Application

FastAPI application factory and uvicorn entrypoint. Mounts the FuelEU
router under ``config.api_prefix`` and the Prometheus exposition endpoint
at ``/metrics``.

Run with:
    $ fueleu serve
    $ uvicorn fueleu.app:create_app --factory --port 3000

Author: FuelEU Platform Team
Status: Production Ready
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from fueleu.config import FuelEUConfig, get_config
from fueleu.models import VERSION
from fueleu.repository import ComplianceRepository
from fueleu.setup import configure_fueleu

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[FuelEUConfig] = None,
    repository: Optional[ComplianceRepository] = None,
) -> FastAPI:
    """Create the FuelEU FastAPI application.

    Args:
        config: Optional FuelEUConfig. Uses global config if None.
        repository: Optional repository override.

    Returns:
        Configured FastAPI app with a started FuelEUService.
    """
    cfg = config if config is not None else get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.fueleu_service.shutdown()

    app = FastAPI(
        title="FuelEU Maritime Compliance",
        description="Compliance balance, banking and pooling under FuelEU Maritime",
        version=VERSION,
        lifespan=lifespan,
    )

    configure_fueleu(app, config=cfg, repository=repository)

    if cfg.enable_metrics:
        @app.get("/metrics", include_in_schema=False)
        async def metrics():
            """Prometheus metrics endpoint."""
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s: %s", request.url.path, exc,
                     exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL", "message": "Internal server error"},
        )

    return app


def main() -> None:
    """Run the API server with uvicorn."""
    cfg = get_config()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()
