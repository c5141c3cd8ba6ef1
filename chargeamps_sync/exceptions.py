"""Custom exception classes for the ChargeAmps sync engine.

This module defines the exception hierarchy used across the engine. Each
exception carries a primary message plus optional details and the context
attributes needed to decide how the failure is handled.

The exception hierarchy follows the pattern:
    ChargerSyncError (base)
    ├── ConfigurationError
    ├── ValidationError
    ├── CredentialsMissingError
    ├── AuthFailureError
    │   └── NotAuthenticatedError
    ├── NetworkTimeoutError
    ├── RemoteApiError
    ├── UnexpectedShapeError
    └── CapabilityError

Only the credential and authentication errors raised by the first login are
fatal. Everything raised inside a polling stage or a command is caught at the
stage boundary and logged.

Example:
    ```python
    from chargeamps_sync.exceptions import CredentialsMissingError, RemoteApiError

    try:
        await engine.start()
    except CredentialsMissingError as e:
        logger.error(f"Cannot start device: {e}")
    ```
"""

from typing import Any, Optional


class ChargerSyncError(Exception):
    """Base exception for all sync engine errors.

    Attributes:
        message (str): The primary error message describing what went wrong.
        details (Optional[str]): Additional contextual information about the error.

    Example:
        ```python
        raise ChargerSyncError("Operation failed", "device 2211-0000 unreachable")
        ```
    """

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        """Initialize the exception with a message and optional details.

        Args:
            message: The primary error message describing what went wrong.
            details: Additional contextual information about the error.
        """
        self.message = message
        self.details = details
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with details if available.

        Returns:
            Formatted error message combining message and details.
        """
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(ChargerSyncError):
    """Raised when the configuration file is missing, unreadable or incomplete.

    Attributes:
        config_field (Optional[str]): The configuration field that caused the error.
        config_value (Optional[Any]): The invalid value that was provided.

    Example:
        ```python
        raise ConfigurationError(
            "Unknown device model",
            config_field="devices[0].model",
            config_value="NOVA"
        )
        ```
    """

    def __init__(
        self,
        message: str,
        config_field: Optional[str] = None,
        config_value: Optional[Any] = None,
    ) -> None:
        """Initialize with configuration context.

        Args:
            message: The primary error message.
            config_field: The specific configuration field that caused the error.
            config_value: The invalid value that was provided.
        """
        self.config_field = config_field
        self.config_value = config_value

        details = None
        if config_field:
            details = f"field '{config_field}'"
            if config_value is not None:
                details += f" with value '{config_value}'"

        super().__init__(message, details)


class ValidationError(ChargerSyncError):
    """Raised when a value fails validation.

    Attributes:
        field_name (str): The name of the field that failed validation.
        value (Any): The actual value that was provided.
        constraint (str): Description of the constraint that was violated.

    Example:
        ```python
        if dimmer not in DIMMER_LEVELS:
            raise ValidationError("dimmer", dimmer, f"must be one of {DIMMER_LEVELS}")
        ```
    """

    def __init__(
        self,
        field_name: str,
        value: Any,
        constraint: str,
        details: Optional[str] = None,
    ) -> None:
        """Initialize with validation context.

        Args:
            field_name: The name of the field that failed validation.
            value: The actual value that was provided.
            constraint: Description of the constraint that was violated.
            details: Additional information about the validation failure.
        """
        self.field_name = field_name
        self.value = value
        self.constraint = constraint
        message = (
            f"Validation failed for '{field_name}': value '{value}' "
            f"violates constraint '{constraint}'"
        )
        super().__init__(message, details)


class CredentialsMissingError(ChargerSyncError):
    """Raised before login when one or more account credentials are empty.

    No network call is attempted when this is raised.

    Attributes:
        missing (tuple): Names of the credentials that were empty.
    """

    def __init__(self, missing: tuple, details: Optional[str] = None) -> None:
        self.missing = tuple(missing)
        message = f"Missing credentials: {', '.join(self.missing)}"
        super().__init__(message, details)


class AuthFailureError(ChargerSyncError):
    """Raised when the vendor API rejects a login, renewal or bearer token.

    Attributes:
        operation (str): The operation that was rejected.
        status (Optional[int]): HTTP status returned by the API, if any.
    """

    def __init__(
        self, operation: str, status: Optional[int] = None, details: Optional[str] = None
    ) -> None:
        self.operation = operation
        self.status = status
        message = f"Authentication failed during '{operation}'"
        if status is not None:
            message += f" (HTTP {status})"
        super().__init__(message, details)


class NotAuthenticatedError(AuthFailureError):
    """Raised when an authenticated call is made without a bearer token."""

    def __init__(self, operation: str) -> None:
        super().__init__(operation, None, "no token available, login first")


class NetworkTimeoutError(ChargerSyncError):
    """Raised when a request does not complete within its timeout.

    Attributes:
        method (str): HTTP method of the request.
        path (str): API path that timed out.
        timeout (float): Timeout in seconds that was exceeded.
    """

    def __init__(
        self, method: str, path: str, timeout: float, details: Optional[str] = None
    ) -> None:
        self.method = method
        self.path = path
        self.timeout = timeout
        message = f"{method} {path} timed out after {timeout:g}s"
        super().__init__(message, details)


class RemoteApiError(ChargerSyncError):
    """Raised when the vendor API answers with an error or cannot be reached.

    Attributes:
        method (str): HTTP method of the request.
        path (str): API path of the request.
        status (Optional[int]): HTTP status code, None for connection errors.

    Example:
        ```python
        try:
            await client.put_remote_stop(device_id, 1)
        except RemoteApiError as e:
            logger.warning(f"Remote stop failed with status {e.status}")
        ```
    """

    def __init__(
        self,
        method: str,
        path: str,
        status: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        self.method = method
        self.path = path
        self.status = status
        message = f"{method} {path} failed"
        if status is not None:
            message += f" with HTTP {status}"
        super().__init__(message, details)


class UnexpectedShapeError(ChargerSyncError):
    """Raised when a response lacks fields the engine depends on.

    Callers are expected to degrade to a safe default rather than let this
    escape a polling stage.

    Attributes:
        path (str): API path of the response.
        field (Optional[str]): The missing or malformed field.
    """

    def __init__(
        self, path: str, field: Optional[str] = None, details: Optional[str] = None
    ) -> None:
        self.path = path
        self.field = field
        message = f"Unexpected response shape from {path}"
        if field:
            message += f" (field '{field}')"
        super().__init__(message, details)


class CapabilityError(ChargerSyncError):
    """Raised when a command targets a feature the device does not offer.

    Attributes:
        capability (str): The capability that was requested.
        model (str): The device model that lacks it.
    """

    def __init__(self, capability: str, model: str, details: Optional[str] = None) -> None:
        self.capability = capability
        self.model = model
        message = f"Capability '{capability}' is not available on {model}"
        super().__init__(message, details)
