"""Exception hierarchy for provisioning runs."""


class ProvisioningError(Exception):
    """Base class for every error a provisioning run reports by kind."""


class NavigationError(ProvisioningError):
    """Navigation to the router failed for a non-transient reason."""


class ConnectivityTransientError(NavigationError):
    """Router unreachable or navigation timed out; worth retrying."""


class ConnectivityFatalError(ProvisioningError):
    """Connection could not be established; aborts the job."""


class AuthenticationError(ProvisioningError):
    """Every configured password was rejected by the login screen."""


class UnrecognizedPageError(ProvisioningError):
    """The UI is in a state none of the stage handlers know about."""


class StageTimeoutError(ProvisioningError):
    """A stage waited too long for the UI to become idle."""


class CancellationError(ProvisioningError):
    """Cooperative cancellation was observed at a suspension point."""


class JobRejectedError(Exception):
    """A coordinator command was refused in the current job state."""


class AlreadyProvisioningError(JobRejectedError):
    def __init__(self, message: str = "already provisioning"):
        super().__init__(message)


class NotProvisioningError(JobRejectedError):
    def __init__(self, message: str = "not provisioning"):
        super().__init__(message)


class CancelAlreadyRequestedError(JobRejectedError):
    def __init__(self, message: str = "cancel already requested"):
        super().__init__(message)
