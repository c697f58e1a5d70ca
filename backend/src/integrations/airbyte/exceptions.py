"""
Exceptions raised by the Airbyte configuration API client.
"""

from typing import Optional, Dict, Any


class AirbyteError(Exception):
    """Base exception for Airbyte API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.response = response or {}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message={self.message!r}, "
            f"status_code={self.status_code}, endpoint={self.endpoint!r})"
        )


class AirbyteAuthenticationError(AirbyteError):
    """
    Raised when the client-credentials grant or an authenticated call fails.

    A 401 from the token endpoint means AIRBYTE_CLIENT_ID or
    AIRBYTE_CLIENT_SECRET is wrong; a 404 means AIRBYTE_API_URL does not
    point at the configuration API.
    """

    def __init__(
        self,
        message: str = "Authentication with Airbyte failed - check AIRBYTE_CLIENT_ID and AIRBYTE_CLIENT_SECRET",
        status_code: int = 401,
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)


class AirbyteRateLimitError(AirbyteError):
    """Raised on 429 responses."""

    def __init__(
        self,
        message: str = "Airbyte rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class AirbyteConnectionError(AirbyteError):
    """Raised when the Airbyte API cannot be reached or times out."""

    def __init__(
        self,
        message: str = "Unable to reach the Airbyte API",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class AirbyteNotFoundError(AirbyteError):
    """Raised on 404 responses and for missing connector definitions."""

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, status_code=404, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id


class AirbyteSyncError(AirbyteError):
    """Raised when a sync cannot be started or its job reports failure."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        connection_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.job_id = job_id
        self.connection_id = connection_id
