"""
Exceptions raised by the tfectl core.

Nothing in the core exits the process; these propagate to the CLI boundary,
which decides what to print and which exit status to use.
"""


class TFEError(Exception):
    """Base exception for tfectl operations."""


class ConfigurationError(TFEError):
    """Raised when required settings (address, token) are missing."""


class NotFoundError(TFEError):
    """Raised when a named or identified remote object does not exist."""

    def __init__(self, resource: str, identifier: str) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class RemoteOperationError(TFEError):
    """Raised when the service rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{message}: {detail}" if detail else message)


class MalformedResponseError(TFEError):
    """Raised when a response document or a local result cannot be (de)serialized."""
