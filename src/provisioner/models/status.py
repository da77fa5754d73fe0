"""Status enums for the router provisioner."""

from enum import Enum


class Stage(str, Enum):
    """Configuration stages of a provisioning run.

    The default queue runs login → hostname → wifi → admin. ``reset`` is only
    queued by the explicit factory reset entry point.
    """

    LOGIN = "login"
    HOSTNAME = "hostname"
    WIFI = "wifi"
    ADMIN = "admin"
    RESET = "reset"


DEFAULT_STAGES = (Stage.LOGIN, Stage.HOSTNAME, Stage.WIFI, Stage.ADMIN)
RESET_STAGES = (Stage.LOGIN, Stage.RESET)


class LoginPage(str, Enum):
    """Recognised screens while the login stage is at the queue head."""

    CREATE_PASSWORD = "createPassword"
    ENTER_PASSWORD = "enterPassword"
    REGION = "region"
    QUICK_SETUP = "quickSetup"
    ADVANCED = "advanced"


class JobState(str, Enum):
    """Job coordinator lifecycle.

    State transitions:
    idle → running → idle (success)
             ↓
        cancelRequested → idle (cancelled)
    running → idle (failed)
    """

    IDLE = "idle"
    RUNNING = "running"
    CANCEL_REQUESTED = "cancelRequested"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EventKind(str, Enum):
    """Kinds of events pushed on the status channel."""

    PROGRESS = "progress"
    ERROR = "error"
    SUCCESS = "success"
    CANCELLED = "cancelled"
