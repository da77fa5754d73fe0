"""FastAPI application for the TP-Link router provisioner."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn

from provisioner.api.routes import router
from provisioner.services.coordinator import JobCoordinator
from provisioner.utils.config import get_settings
from provisioner.utils.logging import setup_logger

VALUE_ERROR_PREFIX = "Value error, "
MISSING_FIELDS_MSG = "hostname, ssid and psk are required"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown hooks.

    Startup:
    - Load settings (fails fast without MAIN_PASSWORD)
    - Initialize logger
    - Initialize JobCoordinator singleton

    Shutdown:
    - Abort a running job so its browser is closed
    """
    settings = get_settings()
    logger = setup_logger("provisioner", settings.log_file, level=settings.log_level)
    logger.info("Router provisioner starting up...")

    coordinator = JobCoordinator(settings=settings)
    logger.info(
        f"Target router {settings.router_url}, "
        f"{len(settings.alternative_passwords)} alternative password(s) configured"
    )
    logger.info(f"Router provisioner ready on port {settings.port}")

    yield

    logger.info("Router provisioner shutting down...")
    await coordinator.shutdown()


app = FastAPI(
    title="TP-Link Router Provisioner",
    description="Unattended first-run setup of TP-Link routers through their web UI",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report the first validation problem as a plain 400 message."""
    errors = exc.errors()
    msg = MISSING_FIELDS_MSG
    for error in errors:
        if error.get("type") == "missing":
            continue
        msg = str(error.get("msg", msg))
        if msg.startswith(VALUE_ERROR_PREFIX):
            msg = msg[len(VALUE_ERROR_PREFIX):]
        break
    logging.getLogger("provisioner.api").info(f"Rejected request: {msg}")
    return JSONResponse(status_code=400, content={"code": 400, "msg": msg, "data": None})


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "tplink-provisioner", "version": "1.0.0"}


def main():
    """Main entry point for running the server."""
    settings = get_settings()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info",
        access_log=True,
    )


if __name__ == "__main__":
    main()
