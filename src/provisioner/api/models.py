"""Pydantic models for HTTP API requests, responses and status events."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from provisioner.models.job import HOSTNAME_PATTERN, MIN_PSK_LENGTH
from provisioner.models.status import EventKind, JobState


class ProvisionRequest(BaseModel):
    """POST /api/v1.0/provision payload.

    Passwords are never accepted from the caller; they come from the
    service configuration.

    Example:
        {
            "hostname": "office-ap",
            "ssid": "OfficeWifi",
            "psk": "12345678",
            "notify_url": "http://controller.local:8000/hooks/router"
        }
    """

    hostname: str = Field(
        ...,
        description="Hostname announced by the router on its WAN port",
        examples=["office-ap", "my-router1"],
    )
    ssid: str = Field(..., description="Wireless network name", examples=["OfficeWifi"])
    psk: str = Field(
        ...,
        description="WPA2 pre-shared key (at least 8 characters)",
        examples=["12345678"],
    )
    notify_url: Optional[str] = Field(
        None,
        pattern=r"^https?://.+",
        description="Optional URL receiving every status event as a POST",
        examples=["http://controller.local:8000/hooks/router"],
    )

    @field_validator("hostname", mode="before")
    @classmethod
    def hostname_is_valid(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("Hostname must be a string")
        if not HOSTNAME_PATTERN.match(v):
            raise ValueError("Hostname must be a valid hostname: A-Za-z0-9 and -_")
        return v

    @field_validator("ssid", mode="before")
    @classmethod
    def ssid_is_string(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("SSID must be a string")
        return v

    @field_validator("psk", mode="before")
    @classmethod
    def psk_is_long_enough(cls, v: Any) -> str:
        if not isinstance(v, str) or len(v) < MIN_PSK_LENGTH:
            raise ValueError("PSK must be at least 8 characters")
        return v


class FactoryResetRequest(BaseModel):
    """POST /api/v1.0/factory-reset payload."""

    notify_url: Optional[str] = Field(
        None,
        pattern=r"^https?://.+",
        description="Optional URL receiving every status event as a POST",
    )


class StatusEvent(BaseModel):
    """One event on the status channel.

    ``message`` is the progress label for progress events and the
    human-readable error for error events. ``screenshot`` carries the
    base64-encoded PNG captured at the point of failure, when available.
    """

    kind: EventKind = Field(..., description="Event kind")
    message: str = Field(..., description="Progress label or error message")
    percent: int = Field(0, ge=0, le=100, description="Stage ordering hint (0-100)")
    screenshot: Optional[str] = Field(
        None, description="Base64 PNG captured when the job failed"
    )
    error_type: Optional[str] = Field(
        None, description="Error class name for error and cancelled events"
    )
    timestamp: datetime = Field(default_factory=datetime.now)


class StatusData(BaseModel):
    """Status data nested in response."""

    state: JobState = Field(..., description="Current coordinator state")
    last_outcome: Optional[JobState] = Field(
        None, description="Terminal outcome of the previous job"
    )
    event: StatusEvent = Field(..., description="Latest published event")


class StatusResponse(BaseModel):
    """GET /api/v1.0/status response."""

    code: int = Field(..., description="Application-level status code (200/500)")
    msg: str = Field(..., description="Status message or error description")
    data: StatusData = Field(..., description="Status data")


class CommandResponse(BaseModel):
    """Response for command endpoints (provision, factory-reset, cancel)."""

    code: int = Field(..., description="Application-level status code")
    msg: str = Field(..., description="Result message")
    data: Optional[dict] = Field(None, description="Optional response data")
