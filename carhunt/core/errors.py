"""Error taxonomy for site jobs and search runs."""


class SearchError(Exception):
    """Base class for car search errors."""


class PreconditionError(SearchError):
    """A job cannot start: unknown site, missing credentials."""


class AuthError(SearchError):
    """A site rejected the login."""


class EnvironmentUnavailableError(SearchError):
    """A browser environment for a resource group failed to start."""

    def __init__(self, group: str, cause: BaseException) -> None:
        self.group = group
        self.cause = cause
        super().__init__(f"{group} browser environment unavailable: {cause}")


class SearchAbortedError(SearchError):
    """The run as a whole could not proceed (stream ended with an error event)."""
