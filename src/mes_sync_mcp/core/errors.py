"""
Remote failure taxonomy shared by the ERP and Lighthouse clients.

Read failures abort an analysis pass; mutation failures mark the whole
selected batch as unapplied. Neither is retried by the sync core.
"""


class RemoteError(Exception):
    """Base exception for failures talking to an external system."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        raw_response: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.raw_response = raw_response


class RemoteFetchError(RemoteError):
    """ERP schedule, device directory or assignment read failed."""

    pass


class RemoteTimeoutError(RemoteFetchError):
    """A read call exceeded its transport timeout."""

    pass


class RemoteMutationError(RemoteError):
    """The combined mutation call failed; nothing is considered applied."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        raw_response: str | None = None,
        timed_out: bool = False,
    ):
        super().__init__(message, status_code=status_code, raw_response=raw_response)
        self.timed_out = timed_out


class ConfigurationError(Exception):
    """Required connection settings are missing."""

    pass
