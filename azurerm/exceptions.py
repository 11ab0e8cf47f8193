"""
azurerm/exceptions.py

Error taxonomy for the plugin.

  ConfigError             — bad credentials / environment. Fatal, never retried.
  NotFoundError           — the remote object does not exist (404). Inside
                            read() this is a state transition, not a failure.
  ValidationError         — declarative input rejected before any network call.
  ResourceIDParseError    — an external identifier could not be parsed.
  RemoteOperationError    — a remote call or long-running completion failed.
                            Surfaced verbatim; retry policy belongs to the host.
  InconsistentStateError  — a success response lacked an expected identifier.
  OperationCancelledError — the shared stop context was cancelled mid-wait.
"""

from typing import List, Optional


class AzureRMError(Exception):
    """Base class for every error raised by the plugin."""


class ConfigError(AzureRMError):
    pass


class NotFoundError(AzureRMError):
    def __init__(self, message: str, status_code: int = 404):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(AzureRMError, ValueError):
    """
    Raised when a declarative config fails schema validation.

    `errors` holds one human-readable line per offending field, e.g.
    "sku.capacity: expected one of [50, 100], got 75".
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors: List[str] = list(errors or [])
        if self.errors:
            message = f"{message}:\n  " + "\n  ".join(self.errors)
        super().__init__(message)


class ResourceIDParseError(ValidationError):
    pass


class RemoteOperationError(AzureRMError):
    def __init__(self, message: str, status_code: Optional[int] = None, step: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.step = step


class InconsistentStateError(AzureRMError):
    pass


class OperationCancelledError(AzureRMError):
    pass
