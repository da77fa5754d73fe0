"""Provisioning job input models."""

import re

from pydantic import BaseModel, Field, field_validator

HOSTNAME_PATTERN = re.compile(r"^[A-Za-z0-9]([-_A-Za-z0-9]*[A-Za-z0-9])?$")
MIN_PSK_LENGTH = 8


class Credentials(BaseModel):
    """Router admin passwords, taken from trusted configuration only.

    ``password`` is set as the admin password on a factory-fresh device and
    tried first on the login screen; ``alternative_passwords`` are tried in
    order afterwards.
    """

    password: str = Field(..., min_length=1, repr=False)
    alternative_passwords: list[str] = Field(default_factory=list, repr=False)

    @property
    def candidates(self) -> list[str]:
        """Passwords in the order the login screen should try them."""
        return [self.password, *self.alternative_passwords]


class ProvisioningRequest(Credentials):
    """Everything a full provisioning run writes to the router."""

    hostname: str = Field(..., description="WAN DHCP hostname")
    ssid: str = Field(..., description="Wireless network name")
    psk: str = Field(..., repr=False, description="WPA2 pre-shared key")

    @field_validator("hostname")
    @classmethod
    def valid_hostname(cls, v: str) -> str:
        if not HOSTNAME_PATTERN.match(v):
            raise ValueError("Hostname must be a valid hostname: A-Za-z0-9 and -_")
        return v

    @field_validator("psk")
    @classmethod
    def psk_length(cls, v: str) -> str:
        if len(v) < MIN_PSK_LENGTH:
            raise ValueError("PSK must be at least 8 characters")
        return v
