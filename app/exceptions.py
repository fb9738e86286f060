"""
Custom exceptions for Relay.
"""

from typing import Any, Optional


class IntegrationError(Exception):
    """Base class for errors raised by a CRM integration"""

    pass


class ConfigurationError(IntegrationError):
    """Raised when a required linkage (credentials, pipeline id, stage id) is missing from the settings"""

    pass


class RemoteRequestError(IntegrationError):
    """
    Raised when a request to a CRM API fails: an HTTP error status, a transport error or a body that isn't JSON.
    The integrations catch and log these, they only reach the caller from `check_connection`.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ConnectionCheckError(IntegrationError):
    """Raised when the connection check against a CRM API fails"""

    pass
