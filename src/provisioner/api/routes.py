"""API route handlers for provisioning endpoints."""

import asyncio
import logging

from fastapi import APIRouter, WebSocket
from fastapi.responses import JSONResponse

from provisioner.api.models import (
    CommandResponse,
    FactoryResetRequest,
    ProvisionRequest,
    StatusData,
    StatusResponse,
)
from provisioner.models.errors import JobRejectedError
from provisioner.models.job import Credentials, ProvisioningRequest
from provisioner.models.status import EventKind
from provisioner.services.coordinator import JobCoordinator
from provisioner.services.publisher import StatusPublisher
from provisioner.utils.config import get_settings

router = APIRouter(prefix="/api/v1.0")
logger = logging.getLogger("provisioner.api")


def _credentials() -> dict:
    settings = get_settings()
    return {
        "password": settings.main_password.get_secret_value(),
        "alternative_passwords": settings.alternative_passwords,
    }


def _rejected(e: JobRejectedError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"code": 409, "msg": str(e), "data": None})


def _accepted() -> JSONResponse:
    return JSONResponse(status_code=202, content={"code": 202, "msg": "accepted", "data": None})


@router.get("/status", response_model=StatusResponse)
async def get_status():
    """GET /api/v1.0/status - Query the current provisioning status.

    Response format:
        {
            "code": 200,
            "msg": "success",
            "data": {
                "state": "running",
                "last_outcome": null,
                "event": {"kind": "progress", "message": "Set hostname", "percent": 40, ...}
            }
        }

    ``code`` is 500 and ``msg`` carries the error while the latest event is
    an error event.
    """
    coordinator = JobCoordinator()
    event = coordinator.current_status()
    data = StatusData(
        state=coordinator.state,
        last_outcome=coordinator.last_outcome,
        event=event,
    )

    if event.kind == EventKind.ERROR:
        return StatusResponse(code=500, msg=f"Provisioning failed: {event.message}", data=data)
    return StatusResponse(code=200, msg="success", data=data)


@router.post("/provision", response_model=CommandResponse, status_code=202)
async def post_provision(request: ProvisionRequest):
    """POST /api/v1.0/provision - Start provisioning the connected router.

    Args:
        request: ProvisionRequest with hostname, ssid, psk and optional notify_url

    Returns:
        202 once the job is accepted; it runs in the background.
        409 "already provisioning" while another job is running.
        400 with a validation message for invalid input (see main.py).
    """
    settings = get_settings()
    job = ProvisioningRequest(
        **_credentials(),
        hostname=settings.hostname_prefix + request.hostname,
        ssid=request.ssid,
        psk=request.psk,
    )

    try:
        JobCoordinator().submit(job, notify_url=request.notify_url)
    except JobRejectedError as e:
        return _rejected(e)

    logger.info(f"Start provisioning: hostname={job.hostname}, ssid={job.ssid}")
    return _accepted()


@router.post("/factory-reset", response_model=CommandResponse, status_code=202)
async def post_factory_reset(request: FactoryResetRequest):
    """POST /api/v1.0/factory-reset - Log in and reset the router to factory defaults."""
    try:
        JobCoordinator().factory_reset(Credentials(**_credentials()), notify_url=request.notify_url)
    except JobRejectedError as e:
        return _rejected(e)

    logger.info("Start factory reset")
    return _accepted()


@router.post("/cancel", response_model=CommandResponse)
async def post_cancel():
    """POST /api/v1.0/cancel - Request cancellation of the running job.

    Returns:
        200 "cancel requested"; 409 "not provisioning" when idle;
        409 "cancel already requested" when a cancellation is pending.
    """
    try:
        JobCoordinator().cancel()
    except JobRejectedError as e:
        return _rejected(e)

    return CommandResponse(code=200, msg="cancel requested")


@router.websocket("/status/ws")
async def status_stream(websocket: WebSocket):
    """WS /api/v1.0/status/ws - Live StatusEvent stream.

    The first frame is the latest snapshot; afterwards every published
    event is forwarded as JSON until the client disconnects.
    """
    await websocket.accept()
    publisher = StatusPublisher()
    queue = publisher.subscribe()
    disconnected = asyncio.ensure_future(_wait_disconnect(websocket))
    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait(
                {getter, disconnected}, return_when=asyncio.FIRST_COMPLETED
            )
            if getter not in done:
                getter.cancel()
                break
            await websocket.send_json(getter.result().model_dump(mode="json"))
    finally:
        disconnected.cancel()
        publisher.unsubscribe(queue)


async def _wait_disconnect(websocket: WebSocket) -> None:
    # Clients never send anything meaningful; only the disconnect matters.
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
